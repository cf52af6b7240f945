from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import Settings, settings
from ..core.timeutil import now_utc
from ..domain.errors import StorageError
from ..domain.status import StatusRegister
from ..sensors.simulated_weight_sensor import SimulatedWeightSensor
from ..services.broadcaster import WebSocketBroadcaster
from ..services.sampler import SamplerService
from ..storage.sqlite_repo import SQLiteRepository
from .schemas import SettingsUpdateRequest, SimWeightRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# Placeholders; main.py points them at the real singletons via app.dependency_overrides.
def get_sampler() -> SamplerService:  # overridden in main
    raise RuntimeError("Sampler dependency not configured")

def get_status() -> StatusRegister:  # overridden in main
    raise RuntimeError("Status dependency not configured")

def get_repo() -> SQLiteRepository:  # overridden in main
    raise RuntimeError("Repo dependency not configured")

def get_broadcaster() -> WebSocketBroadcaster:  # overridden in main
    raise RuntimeError("Broadcaster dependency not configured")

def get_sim_sensors() -> dict[str, SimulatedWeightSensor]:  # overridden in main
    raise RuntimeError("Simulated sensor dependency not configured")


@router.get("/live")
async def get_live(
    svc: SamplerService = Depends(get_sampler),
    status: StatusRegister = Depends(get_status),
    hub: WebSocketBroadcaster = Depends(get_broadcaster),
):
    live = svc.live
    ev = live.last_event
    return {
        "app": settings.app_name,
        "now_utc": now_utc().isoformat(),
        "last_tick_utc": live.last_tick_utc.isoformat() if live.last_tick_utc else None,
        "sensor_ok": live.sensor_ok,
        "last_error": live.last_error,
        "channels": [
            {
                "id": ch.id,
                "value": live.readings.get(ch.id),
                "stable": live.stable.get(ch.id, False),
                "window": list(ch.window),
                "last_committed": ch.last_committed,
            }
            for ch in svc.channels
        ],
        "last_decision": live.last_decision,
        "last_event": ev.to_dict() if ev else None,
        "status": status.current.value,
        "clients": hub.client_count,
        "ticks": live.ticks,
        "failed_ticks": live.failed_ticks,
    }


@router.get("/status")
async def get_status_api(status: StatusRegister = Depends(get_status)):
    return {
        "status": status.current.value,
        "revert_pending": status.revert_pending,
        "seconds_until_revert": status.seconds_until_revert(),
    }


@router.get("/events")
async def events(
    limit: int = 10,
    repo: SQLiteRepository = Depends(get_repo),
):
    try:
        rows = await repo.query_recent_events(min(max(1, limit), 1000))
    except StorageError as e:
        logger.error("Events query failed: %s", e)
        raise HTTPException(status_code=503, detail="Storage unavailable")
    return {"rows": [e.to_dict() for e in rows]}


# --- Simulation endpoints ---
def _sim_sensor(sensors: dict[str, SimulatedWeightSensor], channel: str) -> SimulatedWeightSensor:
    try:
        return sensors[channel]
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown simulated channel: {channel}")


@router.get("/sim/status")
async def sim_status(sensors: dict[str, SimulatedWeightSensor] = Depends(get_sim_sensors)):
    return {"sensors": [s.status() for s in sensors.values()]}


@router.post("/sim/enable")
async def sim_enable(channel: str | None = None, sensors: dict[str, SimulatedWeightSensor] = Depends(get_sim_sensors)):
    targets = [_sim_sensor(sensors, channel)] if channel else list(sensors.values())
    for s in targets:
        s.enable()
    return {"ok": True, "enabled": [s.sensor_id for s in targets]}


@router.post("/sim/disable")
async def sim_disable(channel: str | None = None, sensors: dict[str, SimulatedWeightSensor] = Depends(get_sim_sensors)):
    targets = [_sim_sensor(sensors, channel)] if channel else list(sensors.values())
    for s in targets:
        s.disable()
    return {"ok": True, "disabled": [s.sensor_id for s in targets]}


@router.post("/sim/weight")
async def sim_set_weight(req: SimWeightRequest, sensors: dict[str, SimulatedWeightSensor] = Depends(get_sim_sensors)):
    sensor = _sim_sensor(sensors, req.channel)
    sensor.set_weight(req.weight, req.noise)
    return {"ok": True, **sensor.status()}


# --- Settings endpoints ---

RUNTIME_KEYS = frozenset({
    "stable_eps", "change_eps",
    "changing_revert_seconds", "stored_revert_seconds", "client_revert_seconds",
    "recent_limit", "recent_broadcast_seconds", "sample_seconds",
})

# Loop periods; zero would spin the sampler and publisher without pausing
INTERVAL_KEYS = frozenset({"sample_seconds", "recent_broadcast_seconds"})

# All Settings field names (for validation)
_SETTINGS_FIELDS = {name: field for name, field in Settings.model_fields.items()}


def _cast_setting_value(key: str, raw: object) -> object:
    """Cast a raw value to the type expected by the Settings field."""
    field = _SETTINGS_FIELDS.get(key)
    if field is None:
        raise HTTPException(status_code=400, detail=f"Unknown setting key: {key}")
    annotation = field.annotation
    try:
        if annotation is bool:
            if isinstance(raw, str):
                return raw.lower() in ("true", "1", "yes")
            return bool(raw)
        if annotation is int:
            return int(raw)
        if annotation is float:
            return float(raw)
        if annotation is str:
            return str(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid value for {key}: {raw!r}")
    return raw


def _check_range(key: str, value: object) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return
    if key in INTERVAL_KEYS and value <= 0:
        raise HTTPException(status_code=400, detail=f"{key} must be greater than zero")
    if value < 0:
        raise HTTPException(status_code=400, detail=f"{key} must not be negative")


def apply_persisted_settings(stored: dict[str, str]) -> list[str]:
    """Re-apply runtime-tunable settings saved by PUT /settings. Returns the applied keys."""
    applied = []
    for key, raw in stored.items():
        if key not in RUNTIME_KEYS:
            continue
        try:
            value = _cast_setting_value(key, json.loads(raw))
            _check_range(key, value)
            setattr(settings, key, value)
        except (HTTPException, ValueError):
            logger.warning("Ignoring invalid persisted setting %s=%r", key, raw)
            continue
        applied.append(key)
    return applied


@router.get("/settings")
async def get_settings():
    current = {}
    for key in _SETTINGS_FIELDS:
        current[key] = getattr(settings, key)
    return {
        "settings": current,
        "runtime_keys": sorted(RUNTIME_KEYS),
    }


@router.put("/settings")
async def update_settings(
    req: SettingsUpdateRequest,
    repo: SQLiteRepository = Depends(get_repo),
    svc: SamplerService = Depends(get_sampler),
):
    typed: dict[str, object] = {}
    for key, raw_value in req.updates.items():
        if key not in _SETTINGS_FIELDS:
            raise HTTPException(status_code=400, detail=f"Unknown setting key: {key}")
        typed[key] = _cast_setting_value(key, raw_value)

    for key, value in typed.items():
        _check_range(key, value)

    for key, value in typed.items():
        setattr(settings, key, value)

    runtime_applied = [k for k in typed if k in RUNTIME_KEYS]
    if runtime_applied:
        svc.reconfigure()

    try:
        await repo.set_settings_batch({k: json.dumps(v) for k, v in typed.items()})
    except StorageError as e:
        logger.error("Settings not persisted: %s", e)
        raise HTTPException(status_code=503, detail="Settings applied but not persisted")

    return {
        "ok": True,
        "updated_keys": list(typed),
        "runtime_applied": runtime_applied,
        "restart_required": [k for k in typed if k not in RUNTIME_KEYS],
    }
