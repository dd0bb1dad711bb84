"""Tests for complywatch.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from complywatch.config import CONFIG_FILENAME, ComplyWatchConfig, ConfigError, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, ComplyWatchConfig)
    assert config.root == tmp_path.resolve()
    assert config.scheduler.max_batch_size == 10
    assert config.scheduler.batch_size_target == 5
    assert config.scheduler.standard_delay_ms == 300
    assert config.scheduler.burst_delay_ms == 100
    assert config.scheduler.trickle_factor == 1.5
    assert config.resources.max_memory_mb == 500.0
    assert config.resources.max_cpu_percent is None
    assert config.resources.max_batch_time_ms == 5000.0
    assert config.resources.max_workers == 4
    assert config.files.max_file_size_bytes == 5 * 1024 * 1024
    assert config.exclude_paths == []
    assert config.history_file == tmp_path.resolve() / ".complywatch" / "metrics-history.json"


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        """
scheduler:
  max_batch_size: 20
  batch_size_target: 8
  standard_delay_ms: 250
  burst_delay_ms: 50
  trickle_factor: 2
resources:
  max_memory_mb: 256
  max_cpu_percent: 80
  max_workers: 2
files:
  max_file_size_bytes: 1024
metrics:
  history_path: /var/tmp/history.json
  recent_capacity: 50
  alert_capacity: 10
service:
  host: 0.0.0.0
  port: 9000
exclude_paths:
  - generated/
  - "*.min.js"
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.scheduler.max_batch_size == 20
    assert config.scheduler.batch_size_target == 8
    assert config.scheduler.standard_delay_ms == 250
    assert config.scheduler.burst_delay_ms == 50
    assert config.scheduler.trickle_factor == 2.0
    assert config.resources.max_memory_mb == 256.0
    assert config.resources.max_cpu_percent == 80.0
    assert config.resources.max_workers == 2
    assert config.files.max_file_size_bytes == 1024
    assert config.metrics.recent_capacity == 50
    assert config.metrics.alert_capacity == 10
    assert config.history_file == Path("/var/tmp/history.json")
    assert config.service.host == "0.0.0.0"
    assert config.service.port == 9000
    assert config.exclude_paths == ["generated/", "*.min.js"]


def test_load_config_accepts_config_file_path(tmp_path: Path) -> None:
    config_file = tmp_path / CONFIG_FILENAME
    config_file.write_text("scheduler:\n  max_batch_size: 12\n", encoding="utf-8")

    config = load_config(config_file)

    assert config.root == tmp_path.resolve()
    assert config.scheduler.max_batch_size == 12


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_wraps_yaml_errors(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("scheduler: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path)


def test_load_config_rejects_non_positive_batch_size(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("scheduler:\n  max_batch_size: 0\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="scheduler.max_batch_size"):
        load_config(tmp_path)


def test_load_config_rejects_target_above_max(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        "scheduler:\n  max_batch_size: 4\n  batch_size_target: 6\n", encoding="utf-8"
    )

    with pytest.raises(ConfigError, match="batch_size_target"):
        load_config(tmp_path)


def test_load_config_ignores_wrongly_typed_values(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        "scheduler:\n  standard_delay_ms: soon\nresources: not-a-mapping\n", encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert config.scheduler.standard_delay_ms == 300
    assert config.resources.max_workers == 4


def test_empty_config_file_yields_defaults(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("\n", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.scheduler.max_batch_size == 10
