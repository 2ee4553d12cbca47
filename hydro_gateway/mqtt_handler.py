# hydro_gateway/mqtt_handler.py
import json, time, logging
import paho.mqtt.client as mqtt

from .ingestor import TelemetryEvent, TelemetryIngestor
from .clock import SystemClock
from .settings import settings

log = logging.getLogger("mqtt")

_clock = SystemClock()

def _rc_int(rc) -> int:
    # paho v2 ReasonCode objects or plain ints
    try:
        return int(getattr(rc, "value", rc))
    except (TypeError, ValueError):
        return -1

def events_topic(topic_base: str, registry: str) -> str:
    return f"{topic_base}/{registry}/+/events"

def parse_event(topic: str, payload: bytes, topic_base: str, registry: str) -> TelemetryEvent | None:
    """Turn ``{base}/{registry}/{device}/events`` + JSON body into an event, None if malformed."""
    parts = topic.split("/")
    if len(parts) != 4 or parts[0] != topic_base or parts[1] != registry or parts[3] != "events":
        log.warning("ignoring message on unexpected topic %s", topic)
        return None
    dev_id = parts[2]
    if not dev_id:
        return None
    try:
        body = json.loads(payload.decode("utf-8")) if payload else {}
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        log.warning("dropping undecodable telemetry from %s: %s", dev_id, e)
        return None
    if not isinstance(body, dict):
        log.warning("dropping non-object telemetry from %s", dev_id)
        return None
    return TelemetryEvent(device_id=dev_id, fields=body, received_at=_clock.now())

def make_message_handler(ingestor: TelemetryIngestor, topic_base: str, registry: str):
    def on_message(client, userdata, msg):
        # an exception here would stop paho's network loop thread
        try:
            event = parse_event(msg.topic, msg.payload, topic_base, registry)
            if event is None:
                return
            result = ingestor.ingest(event)
            log.debug("ingested %s latest=%s archived=%s", event.device_id, result.latest_written, result.archived)
        except Exception:
            log.exception("on_message error topic=%s", msg.topic)

    return on_message

def start_mqtt(ingestor: TelemetryIngestor) -> mqtt.Client:
    client = mqtt.Client(
        client_id=f"gateway-{int(time.time())}",
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
    )
    client.enable_logger(log)

    if settings.mqtt_username and settings.mqtt_password:
        client.username_pw_set(settings.mqtt_username, settings.mqtt_password)

    client.reconnect_delay_set(min_delay=1, max_delay=30)
    topic = events_topic(settings.mqtt_topic_base, settings.registry_id)

    def on_connect(client, userdata, flags, reason_code, properties):
        rc = _rc_int(reason_code)
        if rc != mqtt.CONNACK_ACCEPTED:
            log.error("connect failed rc=%s, retrying", rc)
            return
        res, mid = client.subscribe(topic, qos=1)
        log.info("connected, SUB %s res=%s mid=%s", topic, res, mid)

    def on_disconnect(client, userdata, flags, reason_code, properties):
        log.warning("disconnected rc=%s, reconnecting", _rc_int(reason_code))

    client.on_connect = on_connect
    client.on_disconnect = on_disconnect
    client.on_message = make_message_handler(ingestor, settings.mqtt_topic_base, settings.registry_id)

    log.info(
        "bootstrapping host=%s port=%s user=%s topic=%s",
        settings.mqtt_host, settings.mqtt_port,
        "<set>" if settings.mqtt_username else "<none>", topic,
    )

    client.connect(settings.mqtt_host, settings.mqtt_port, keepalive=30)
    client.loop_start()
    return client
