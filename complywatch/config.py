"""Configuration loading for complywatch (.complywatch.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".complywatch.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SchedulerConfig:
    """Batching and debounce settings for the change scheduler."""

    max_batch_size: int = 10
    batch_size_target: int = 5
    standard_delay_ms: int = 300
    burst_delay_ms: int = 100
    trickle_factor: float = 1.5
    max_pending: int = 10_000
    age_boost_seconds: float = 10.0


@dataclass
class ResourceConfig:
    """Backpressure thresholds enforced by the resource guard."""

    max_memory_mb: float = 500.0
    max_cpu_percent: Optional[float] = None
    max_batch_time_ms: float = 5000.0
    max_workers: int = 4
    read_timeout_ms: int = 2000
    shutdown_grace_ms: int = 5000


@dataclass
class FileConfig:
    """Cheap per-file filters applied before validation."""

    max_file_size_bytes: int = 5 * 1024 * 1024


@dataclass
class EffectivenessConfig:
    """Constants used when scoring session effectiveness."""

    hourly_rate: float = 100.0
    time_saved_target_hours: float = 8.0
    history_size: int = 20
    trend_window: int = 5
    trend_threshold: float = 5.0


@dataclass
class MetricsConfig:
    """Retention of live results and persisted metric snapshots."""

    recent_capacity: int = 1000
    history_retention: int = 100
    history_path: str = ".complywatch/metrics-history.json"
    snapshot_interval_ms: int = 30_000
    alert_capacity: int = 50


@dataclass
class ServiceConfig:
    """Bind address for the metrics HTTP API."""

    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class ComplyWatchConfig:
    """Represents the high-level settings defined in .complywatch.yml."""

    root: Path
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    resources: ResourceConfig = field(default_factory=ResourceConfig)
    files: FileConfig = field(default_factory=FileConfig)
    effectiveness: EffectivenessConfig = field(default_factory=EffectivenessConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    exclude_paths: List[str] = field(default_factory=list)

    @property
    def history_file(self) -> Path:
        path = Path(self.metrics.history_path)
        return path if path.is_absolute() else self.root / path


def load_config(config_path: Path) -> ComplyWatchConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ComplyWatchConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = ComplyWatchConfig(root=root)

    scheduler_data = _as_dict(data.get("scheduler"))
    scheduler = config.scheduler
    scheduler.max_batch_size = _positive_int(
        scheduler_data.get("max_batch_size"), scheduler.max_batch_size, "scheduler.max_batch_size"
    )
    scheduler.batch_size_target = _positive_int(
        scheduler_data.get("batch_size_target"),
        scheduler.batch_size_target,
        "scheduler.batch_size_target",
    )
    scheduler.standard_delay_ms = _as_int(scheduler_data.get("standard_delay_ms"), scheduler.standard_delay_ms)
    scheduler.burst_delay_ms = _as_int(scheduler_data.get("burst_delay_ms"), scheduler.burst_delay_ms)
    scheduler.trickle_factor = _as_float(scheduler_data.get("trickle_factor"), scheduler.trickle_factor)
    scheduler.max_pending = _positive_int(
        scheduler_data.get("max_pending"), scheduler.max_pending, "scheduler.max_pending"
    )
    scheduler.age_boost_seconds = _as_float(
        scheduler_data.get("age_boost_seconds"), scheduler.age_boost_seconds
    )
    if scheduler.batch_size_target > scheduler.max_batch_size:
        raise ConfigError("scheduler.batch_size_target cannot exceed scheduler.max_batch_size")

    resource_data = _as_dict(data.get("resources"))
    resources = config.resources
    resources.max_memory_mb = _as_float(resource_data.get("max_memory_mb"), resources.max_memory_mb)
    cpu = resource_data.get("max_cpu_percent")
    resources.max_cpu_percent = _as_float(cpu, None) if cpu is not None else None
    resources.max_batch_time_ms = _as_float(
        resource_data.get("max_batch_time_ms"), resources.max_batch_time_ms
    )
    resources.max_workers = _positive_int(
        resource_data.get("max_workers"), resources.max_workers, "resources.max_workers"
    )
    resources.read_timeout_ms = _as_int(resource_data.get("read_timeout_ms"), resources.read_timeout_ms)
    resources.shutdown_grace_ms = _as_int(
        resource_data.get("shutdown_grace_ms"), resources.shutdown_grace_ms
    )

    file_data = _as_dict(data.get("files"))
    config.files.max_file_size_bytes = _as_int(
        file_data.get("max_file_size_bytes"), config.files.max_file_size_bytes
    )

    effectiveness_data = _as_dict(data.get("effectiveness"))
    effectiveness = config.effectiveness
    effectiveness.hourly_rate = _as_float(effectiveness_data.get("hourly_rate"), effectiveness.hourly_rate)
    effectiveness.time_saved_target_hours = _as_float(
        effectiveness_data.get("time_saved_target_hours"), effectiveness.time_saved_target_hours
    )
    effectiveness.history_size = _positive_int(
        effectiveness_data.get("history_size"), effectiveness.history_size, "effectiveness.history_size"
    )
    effectiveness.trend_window = _positive_int(
        effectiveness_data.get("trend_window"), effectiveness.trend_window, "effectiveness.trend_window"
    )
    effectiveness.trend_threshold = _as_float(
        effectiveness_data.get("trend_threshold"), effectiveness.trend_threshold
    )

    metrics_data = _as_dict(data.get("metrics"))
    metrics = config.metrics
    metrics.recent_capacity = _positive_int(
        metrics_data.get("recent_capacity"), metrics.recent_capacity, "metrics.recent_capacity"
    )
    metrics.history_retention = _positive_int(
        metrics_data.get("history_retention"), metrics.history_retention, "metrics.history_retention"
    )
    metrics.history_path = _as_str(metrics_data.get("history_path")) or metrics.history_path
    metrics.snapshot_interval_ms = _as_int(
        metrics_data.get("snapshot_interval_ms"), metrics.snapshot_interval_ms
    )
    metrics.alert_capacity = _positive_int(
        metrics_data.get("alert_capacity"), metrics.alert_capacity, "metrics.alert_capacity"
    )

    service_data = _as_dict(data.get("service"))
    config.service.host = _as_str(service_data.get("host")) or config.service.host
    config.service.port = _as_int(service_data.get("port"), config.service.port)

    config.exclude_paths = _as_str_list(data.get("exclude_paths"))
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any, default: Optional[float]) -> Optional[float]:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _positive_int(value: Any, default: int, key: str) -> int:
    result = _as_int(value, default)
    if result < 1:
        raise ConfigError(f"{key} must be a positive integer (got {value!r})")
    return result


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ComplyWatchConfig",
    "ConfigError",
    "EffectivenessConfig",
    "FileConfig",
    "MetricsConfig",
    "ResourceConfig",
    "SchedulerConfig",
    "ServiceConfig",
    "load_config",
]
