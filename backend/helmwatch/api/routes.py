from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from helmwatch.models.assessment import CheckRisksResult
from helmwatch.schemas.anchor import (
    AnchorDropResponse,
    AnchorRadiusResponse,
    AnchorRepositionResponse,
    AnchorSnapshotRead,
    AnchorStatusRead,
    RadiusRequest,
    RepositionRequest,
)
from helmwatch.schemas.collision import CollisionScanResponse
from helmwatch.schemas.mode import ModeRead, ModeRequest, NotificationRead, TelemetryDeltaResponse
from helmwatch.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter()

# Anchor and collision handlers are coroutines so they run on the event loop,
# serialized with the position consumer and the periodic scan.


def _scan_response(result: CheckRisksResult | None) -> dict:
    if result is None:
        return {"assessments": [], "alerts": [], "danger_count": 0, "caution_count": 0, "total_in_range": 0}
    return {
        "assessments": result.assessments,
        "alerts": result.alerts,
        "danger_count": result.danger_count,
        "caution_count": result.caution_count,
        "total_in_range": result.total_in_range,
        "summary": result.summary,
    }


# ---------------------------------------------------------------------------
# Anchor watch
# ---------------------------------------------------------------------------


@router.post("/navigation/anchor/drop", response_model=AnchorDropResponse, tags=["anchor"])
async def drop_anchor(services: Services = Depends(get_services)):
    """Record the current vessel position as the anchor drop point."""
    position = services.anchor_watch.drop()
    return {"position": position, "anchor": services.anchor_watch.snapshot()}


@router.post("/navigation/anchor/radius", response_model=AnchorRadiusResponse, tags=["anchor"])
async def set_anchor_radius(body: RadiusRequest, services: Services = Depends(get_services)):
    max_radius = services.anchor_watch.set_radius(body.value)
    return {"max_radius": max_radius, "anchor": services.anchor_watch.snapshot()}


@router.post("/navigation/anchor/reposition", response_model=AnchorRepositionResponse, tags=["anchor"])
async def reposition_anchor(body: RepositionRequest, services: Services = Depends(get_services)):
    """Estimate the anchor position from rode length and depth, then mark it dropped."""
    position = services.anchor_watch.reposition(body.rode_length, body.anchor_depth)
    return {
        "position": position,
        "rode_length": body.rode_length,
        "anchor_depth": body.anchor_depth,
        "anchor": services.anchor_watch.snapshot(),
    }


@router.post("/navigation/anchor/raise", response_model=AnchorSnapshotRead, tags=["anchor"])
async def raise_anchor(services: Services = Depends(get_services)):
    record = services.anchor_watch.raise_anchor()
    return {**record.model_dump(), "current_radius": None}


@router.get("/navigation/anchor/status", response_model=AnchorStatusRead, tags=["anchor"])
async def anchor_status(services: Services = Depends(get_services)):
    return services.anchor_watch.status()


@router.get("/navigation/anchor", response_model=AnchorSnapshotRead, tags=["anchor"])
async def anchor_snapshot(services: Services = Depends(get_services)):
    record = services.anchor_watch.snapshot()
    return {**record.model_dump(), "current_radius": services.anchor_watch.alarm.current_radius}


# ---------------------------------------------------------------------------
# Collision risk
# ---------------------------------------------------------------------------


@router.post("/collision/scan", response_model=CollisionScanResponse, tags=["collision"])
async def collision_scan(services: Services = Depends(get_services)):
    """Run an on-demand collision scan (same path as the periodic scan)."""
    result = services.collision_monitor.run_scan()
    return _scan_response(result)


@router.get("/collision/targets", response_model=CollisionScanResponse, tags=["collision"])
async def collision_targets(services: Services = Depends(get_services)):
    """Result of the most recent scan."""
    return _scan_response(services.collision_monitor.last_result)


# ---------------------------------------------------------------------------
# Telemetry, mode, notifications
# ---------------------------------------------------------------------------


@router.post("/telemetry/delta", response_model=TelemetryDeltaResponse, tags=["telemetry"])
async def telemetry_delta(delta: dict[str, Any] = Body(...), services: Services = Depends(get_services)):
    """Apply a Signal K delta message to the telemetry store."""
    applied = services.telemetry.apply_delta(delta)
    if not applied:
        logger.debug("Telemetry delta applied no values")
    return {"applied": applied}


@router.get("/mode", response_model=ModeRead, tags=["mode"])
async def get_mode(services: Services = Depends(get_services)):
    return {"mode": services.mode.mode.value}


@router.post("/mode", response_model=ModeRead, tags=["mode"])
async def set_mode(body: ModeRequest, services: Services = Depends(get_services)):
    mode = services.mode.set_mode(body.mode)
    return {"mode": mode.value}


@router.get("/notifications", response_model=list[NotificationRead], tags=["notifications"])
async def list_notifications(services: Services = Depends(get_services)):
    return list(services.sink.active().values())
