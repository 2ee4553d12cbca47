import logging
from datetime import timedelta

from fastapi import Depends, FastAPI, HTTPException, Response

from .db import engine, init_db
from .dispatcher import CommandDispatcher
from .ingestor import TelemetryIngestor
from .mqtt_handler import start_mqtt
from .schemas import CommandRequest, CommandResponse, LatestStateOut, PushEnvelope
from .settings import settings
from .store import PersistenceError, TelemetryStore
from .transport import MqttDeviceTransport

log = logging.getLogger("api")

app = FastAPI(title="Hydroponics Gateway", version="0.1.0")

store = TelemetryStore(engine)
ingestor = TelemetryIngestor(
    store,
    window=timedelta(minutes=settings.history_window_minutes),
    scope=settings.history_scope,
    strict=settings.history_strict,
)
transport = MqttDeviceTransport(
    None,
    topic_base=settings.mqtt_topic_base,
    project=settings.project_id,
    region=settings.region,
    registry=settings.registry_id,
    publish_timeout=settings.mqtt_publish_timeout,
)
dispatcher = CommandDispatcher(transport, settings.project_id, settings.region, settings.registry_id)

def get_dispatcher() -> CommandDispatcher:
    return dispatcher

def get_ingestor() -> TelemetryIngestor:
    return ingestor

def get_store() -> TelemetryStore:
    return store

@app.on_event("startup")
async def on_startup():
    logging.basicConfig(level=settings.log_level.upper())
    init_db()
    if not settings.mqtt_enabled:
        log.info("MQTT disabled, commands will fail until a client is attached")
        return
    try:
        transport.client = start_mqtt(ingestor)
    except Exception:
        # the API stays up; dispatch reports failure while the client is missing
        log.exception("MQTT failed to start")
        transport.client = None

@app.on_event("shutdown")
async def on_shutdown():
    if transport.client is not None:
        transport.client.loop_stop()
        transport.client.disconnect()

@app.get("/healthz")
def healthz():
    return {"status": "ok"}

@app.post("/api/commands", response_model=CommandResponse)
def post_command(cmd: CommandRequest, dispatcher: CommandDispatcher = Depends(get_dispatcher)):
    if not dispatcher.dispatch(cmd.deviceId, cmd.payload):
        raise HTTPException(status_code=404, detail="Command delivery failed")
    return CommandResponse(status="sent", deviceId=cmd.deviceId)

@app.post("/api/events", status_code=204)
def push_event(envelope: PushEnvelope, ingestor: TelemetryIngestor = Depends(get_ingestor)):
    # always acknowledged: redelivery would not fix a bad message or a storage outage
    try:
        event = envelope.message.to_event()
    except ValueError as e:
        log.warning("dropping push message %s: %s", envelope.message.messageId, e)
        return Response(status_code=204)
    ingestor.ingest(event)
    return Response(status_code=204)

@app.get("/api/devices/{device_id}/latest", response_model=LatestStateOut)
def get_latest(device_id: str, store: TelemetryStore = Depends(get_store)):
    try:
        row = store.get_latest(device_id)
    except PersistenceError as e:
        log.error("latest read failed: %s", e)
        raise HTTPException(status_code=503, detail="Storage unavailable")
    if row is None:
        raise HTTPException(status_code=404, detail="No telemetry for device")
    return LatestStateOut(deviceId=row.device_id, timestamp=row.timestamp, **(row.data or {}))
