"""FastAPI application exposing live validation metrics."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..engine import Engine


class HealthResponse(BaseModel):
    status: str
    running: bool


class CountersResponse(BaseModel):
    files_changed: int
    violations_detected: int
    critical_violations: int
    warnings: int
    info_violations: int
    suggestions: int
    total_processing_time_ms: float
    clean_files: int


class EffectivenessResponse(BaseModel):
    effectiveness_score: int
    time_saved_hours: float
    productivity_gain_pct: float
    quality_improvement_pct: float
    standards_adoption_pct: float
    roi_pct: float
    compliance_rate_pct: float
    trend: str


class ViolationModel(BaseModel):
    rule: str
    severity: str
    message: str
    line: Optional[int] = None


class ResultModel(BaseModel):
    path: str
    violations: List[ViolationModel]
    processing_time_ms: float
    completed_at: Optional[str] = None


class AlertModel(BaseModel):
    kind: str
    level: str
    message: str
    raised_at: Optional[str] = None


class HistoryResponse(BaseModel):
    entries: List[Dict[str, Any]]


def create_app(engine_provider: Callable[[], Engine]) -> FastAPI:
    """Create the FastAPI application reading from the engine ``engine_provider`` returns."""

    app = FastAPI(title="ComplyWatch Metrics", version="1.0.0")

    async def get_engine() -> Engine:
        return engine_provider()

    @app.get("/health", response_model=HealthResponse)
    async def health(engine: Engine = Depends(get_engine)) -> HealthResponse:
        return HealthResponse(status="ok", running=engine.running)

    @app.get("/metrics/counters", response_model=CountersResponse)
    async def counters(engine: Engine = Depends(get_engine)) -> CountersResponse:
        return CountersResponse(**engine.current_counters().to_dict())

    @app.get("/metrics/effectiveness", response_model=EffectivenessResponse)
    async def effectiveness(engine: Engine = Depends(get_engine)) -> EffectivenessResponse:
        snapshot = engine.current_effectiveness()
        return EffectivenessResponse(**snapshot.to_dict(), trend=engine.trend())

    @app.get("/metrics/recent", response_model=List[ResultModel])
    async def recent(
        limit: int = Query(20, ge=1, le=1000),
        engine: Engine = Depends(get_engine),
    ) -> List[ResultModel]:
        return [ResultModel(**result.to_dict()) for result in engine.recent_results(limit)]

    @app.get("/metrics/alerts", response_model=List[AlertModel])
    async def alerts(
        limit: int = Query(50, ge=1, le=1000),
        engine: Engine = Depends(get_engine),
    ) -> List[AlertModel]:
        return [AlertModel(**alert.to_dict()) for alert in engine.recent_alerts(limit)]

    @app.get("/metrics/history", response_model=HistoryResponse)
    async def history(
        limit: Optional[int] = Query(None, ge=1),
        engine: Engine = Depends(get_engine),
    ) -> HistoryResponse:
        return HistoryResponse(entries=engine.history.entries(limit))

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    return app


def run_service(
    engine: Engine, host: str = "127.0.0.1", port: int = 8765
) -> None:  # pragma: no cover - integration path
    app = create_app(lambda: engine)
    uvicorn.run(app, host=host, port=port, log_level="warning")


__all__ = ["create_app", "run_service"]
