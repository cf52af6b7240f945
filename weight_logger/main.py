from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from .core.config import settings
from .core.log import configure_logging

from .api.routes import router as api_router, apply_persisted_settings
from .api.ws import ws_router
import weight_logger.api.routes as routes_module

from .domain.errors import StorageError
from .domain.interfaces import StatusLight
from .domain.status import StatusRegister
from .drivers.status_light_sim import SimulatedStatusLight
from .drivers.status_light_gpio import GpioStatusLight, RgbPins
from .services.broadcaster import WebSocketBroadcaster
from .services.recent_publisher import RecentEventsPublisher
from .services.sampler import SamplerService
from .services.sink import EventSink
from .storage.sqlite_repo import SQLiteRepository

from .sensors.base import Sensor
from .sensors.file_weight_sensor import FileWeightSensor
from .sensors.simulated_weight_sensor import SimulatedWeightSensor


logger = logging.getLogger(__name__)


sim_sensors: dict[str, SimulatedWeightSensor] = {}

def build_sensors() -> list[Sensor]:
    if settings.sensor_mode.lower() == "file":
        if len(settings.sensor_paths) != len(settings.sensor_ids):
            raise RuntimeError("sensor_paths and sensor_ids must have the same length")
        return [
            FileWeightSensor(path=p, sensor_id=i)
            for i, p in zip(settings.sensor_ids, settings.sensor_paths)
        ]

    # default to sim
    for sensor_id in settings.sensor_ids:
        sim_sensors[sensor_id] = SimulatedWeightSensor(sensor_id=sensor_id)
    return list(sim_sensors.values())


def build_status_light() -> StatusLight:
    if settings.status_light_mode.lower() == "gpio":
        return GpioStatusLight(
            RgbPins(red=settings.led_red_pin, green=settings.led_green_pin, blue=settings.led_blue_pin),
            chip=settings.gpio_chip,
        )
    return SimulatedStatusLight()


sensors = build_sensors()


# --- Singletons ---
broadcaster = WebSocketBroadcaster()
repo = SQLiteRepository(settings.sqlite_path)
status: StatusRegister | None = None
sampler: SamplerService | None = None
recent_publisher = RecentEventsPublisher(repo, broadcaster)


def _broadcast_status(signal) -> None:
    broadcaster.broadcast("status", {"status": signal.value})


def get_sampler() -> SamplerService:
    assert sampler is not None
    return sampler


def get_status() -> StatusRegister:
    assert status is not None
    return status


def get_repo() -> SQLiteRepository:
    return repo


def get_broadcaster() -> WebSocketBroadcaster:
    return broadcaster


def get_sim_sensors() -> dict[str, SimulatedWeightSensor]:
    if not sim_sensors:
        raise HTTPException(status_code=404, detail="Sim sensors not available (sensor_mode is not 'sim').")
    return sim_sensors


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting %s (sensor_mode=%s light=%s)", settings.app_name, settings.sensor_mode, settings.status_light_mode)

    await repo.init()
    try:
        applied = apply_persisted_settings(await repo.get_all_settings())
        if applied:
            logger.info("Applied persisted settings: %s", applied)
    except StorageError as e:
        logger.warning("Persisted settings unavailable: %s", e)

    global status, sampler
    status = StatusRegister(build_status_light(), on_change=_broadcast_status)
    sampler = SamplerService(
        sensors=sensors,
        sink=EventSink(repo, broadcaster),
        status=status,
        broadcaster=broadcaster,
    )
    await sampler.start()
    await recent_publisher.start()

    try:
        yield
    finally:
        await recent_publisher.stop()
        if sampler:
            await sampler.stop()

        # Leave the light dark on exit
        status.shutdown()

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_sampler] = get_sampler
app.dependency_overrides[routes_module.get_status] = get_status
app.dependency_overrides[routes_module.get_repo] = get_repo
app.dependency_overrides[routes_module.get_broadcaster] = get_broadcaster
app.dependency_overrides[routes_module.get_sim_sensors] = get_sim_sensors

app.include_router(api_router, prefix="/api")
app.include_router(ws_router)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name}


def run() -> None:
    import uvicorn

    uvicorn.run("weight_logger.main:app", host=settings.host, port=settings.port)
