"""
ThermalRelay Main Application
=============================

FastAPI entry point for the sensor relay.

The relay pipeline runs as a background task for the lifetime of the app:
    named pipe → line decode → classification → alert edges → delivery

Endpoints:
    GET  /                  - Service information
    GET  /health            - Liveness probe
    GET  /status            - Delivery buffer, in-flight flag, active alerts
    GET  /metrics           - Pipeline, transport and delivery counters
    POST /temperature-data  - Manually submit a reading (testing)
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from thermal_relay.config import settings
from thermal_relay.analysis import (
    AlertStateMachine,
    AlertStateStore,
    AnomalyClassifier,
    RangeThresholds,
)
from thermal_relay.delivery import CollectorClient, DeliveryQueue
from thermal_relay.models.reading import N_PIXEL, Reading
from thermal_relay.pipeline import Pipeline
from thermal_relay.stream import PipeReader


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_pipeline: Optional[Pipeline] = None
_pipeline_task: Optional[asyncio.Task] = None
_startup_time: float = time.time()


def get_pipeline() -> Optional[Pipeline]:
    return _pipeline


# =============================================================================
# Pipeline Factory
# =============================================================================

def create_pipeline() -> Pipeline:
    """Build the relay pipeline from settings."""
    reader = PipeReader(
        settings.transport.pipe_path,
        reopen_delay=settings.transport.reopen_delay_seconds,
    )
    # Failing to create the pipe is the one fatal startup condition
    reader.ensure_pipe()

    collector = settings.collector
    client = CollectorClient(
        collector.base_url,
        temperature_path=collector.temperature_path,
        alerts_path=collector.alerts_path,
        timeout=collector.timeout_seconds,
    )
    delivery = DeliveryQueue(
        client,
        retry_limit=collector.retry_limit,
        retry_delay=collector.retry_delay_seconds,
        max_buffer_size=collector.max_buffer_size,
    )
    classifier = AnomalyClassifier(
        RangeThresholds(
            min_threshold=settings.thresholds.min,
            max_threshold=settings.thresholds.max,
        )
    )
    return Pipeline(
        reader=reader,
        classifier=classifier,
        alert_machine=AlertStateMachine(),
        delivery=delivery,
        alert_state=AlertStateStore(),
    )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _pipeline, _pipeline_task, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.app.name} {settings.app.version}")
    logger.info(f"Pipe: {settings.transport.pipe_path}")
    logger.info(f"Collector: {settings.collector.base_url}")

    _pipeline = create_pipeline()
    _pipeline_task = asyncio.create_task(_pipeline.run(), name="relay_pipeline")

    yield

    logger.info("Shutting down gracefully...")

    if _pipeline is not None:
        await _pipeline.stop()

    if _pipeline_task is not None:
        try:
            await asyncio.wait_for(_pipeline_task, timeout=5.0)
        except asyncio.TimeoutError:
            _pipeline_task.cancel()
            try:
                await _pipeline_task
            except asyncio.CancelledError:
                pass

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="ThermalRelay",
    description="Thermal sensor relay with edge-triggered alerts and buffered delivery",
    version=settings.app.version,
    lifespan=lifespan,
)


class ManualReading(BaseModel):
    """Body of a manually submitted reading."""

    model_config = ConfigDict(allow_inf_nan=False)

    sensor_id: str = Field(default_factory=lambda: settings.sensor.sensor_id, min_length=1)
    temperature_data: List[float] = Field(..., min_length=N_PIXEL, max_length=N_PIXEL)
    ptat: float = Field(default=0.0, description="Reference temperature (degC)")


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "ThermalRelay",
        "name": settings.app.name,
        "version": settings.app.version,
        "status": "running",
        "pipe": settings.transport.pipe_path,
        "collector": settings.collector.base_url,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe - always 200 while the process is alive."""
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/status")
async def status() -> JSONResponse:
    """Delivery and alert state."""
    pipeline = get_pipeline()
    if pipeline is None:
        return JSONResponse({"status": "not_ready"}, status_code=503)

    return JSONResponse({
        "status": "running" if pipeline.running else "idle",
        **pipeline.status(),
        "last_updated": datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed counters for observability."""
    pipeline = get_pipeline()
    if pipeline is None:
        return JSONResponse({"status": "not_ready"}, status_code=503)

    transport_metrics = {}
    if pipeline.reader is not None:
        transport_metrics = {
            "pipe_connected": pipeline.reader.connected,
            **pipeline.reader.metrics.to_dict(),
        }

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        **pipeline.metrics.to_dict(),
        **transport_metrics,
        **pipeline.delivery.status(),
        "alert_states": pipeline.alert_state.snapshot(),
    })


@app.post("/temperature-data")
async def submit_temperature(body: ManualReading) -> JSONResponse:
    """Process a manually submitted reading like a pipe reading."""
    pipeline = get_pipeline()
    if pipeline is None:
        return JSONResponse({"error": "Pipeline not running"}, status_code=503)

    reading = Reading(
        sensor_id=body.sensor_id,
        timestamp=datetime.now(),
        reference_temperature=body.ptat,
        pixel_temperatures=tuple(body.temperature_data),
    )
    analysis = pipeline.process_reading(reading)

    return JSONResponse({
        "success": True,
        "message": "Temperature data accepted for delivery",
        "analysis": analysis.to_dict(),
    })


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Run the relay under uvicorn."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "thermal_relay.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
