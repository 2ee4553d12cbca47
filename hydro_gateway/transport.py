import base64
import json
import logging
import re
from typing import Any, Protocol

import paho.mqtt.client as mqtt

log = logging.getLogger("transport")

_PATH_RE = re.compile(
    r"^projects/(?P<project>[^/]+)/locations/(?P<region>[^/]+)"
    r"/registries/(?P<registry>[^/]+)/devices/(?P<device>[^/]+)$"
)


class TransportError(Exception):
    """Command delivery to a device failed."""


def device_path(project: str, region: str, registry: str, device_id: str) -> str:
    return f"projects/{project}/locations/{region}/registries/{registry}/devices/{device_id}"


def parse_device_path(path: str) -> dict[str, str]:
    m = _PATH_RE.match(path)
    if not m:
        raise ValueError(f"not a device path: {path!r}")
    return m.groupdict()


def encode_payload(payload: Any) -> str:
    """JSON-serialize ``payload`` and base64 the UTF-8 bytes."""
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def decode_payload(data: str) -> Any:
    return json.loads(base64.b64decode(data).decode("utf-8"))


class DeviceTransport(Protocol):
    def send_command(self, name: str, binary_data: str) -> None:
        """Deliver ``binary_data`` (base64) to the device at ``name``; raise on failure."""
        ...


class MqttDeviceTransport:
    """Publishes commands on ``{topic_base}/{registry}/{device}/commands``.

    Only devices inside the configured registry are reachable; anything else
    is reported as an unknown device.
    """

    def __init__(
        self,
        client: mqtt.Client | None,
        topic_base: str,
        project: str,
        region: str,
        registry: str,
        publish_timeout: float = 5.0,
    ) -> None:
        self.client = client
        self.topic_base = topic_base
        self.scope = (project, region, registry)
        self.publish_timeout = publish_timeout

    def command_topic(self, name: str) -> str:
        try:
            parts = parse_device_path(name)
        except ValueError as e:
            raise TransportError(str(e)) from e
        if (parts["project"], parts["region"], parts["registry"]) != self.scope:
            raise TransportError(f"unknown device {name}")
        return f"{self.topic_base}/{parts['registry']}/{parts['device']}/commands"

    def send_command(self, name: str, binary_data: str) -> None:
        if self.client is None:
            raise TransportError("MQTT not initialized")
        topic = self.command_topic(name)
        try:
            raw = base64.b64decode(binary_data, validate=True)
        except ValueError as e:
            raise TransportError(f"payload is not base64: {e}") from e

        info = self.client.publish(topic, raw, qos=1, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"publish rc={info.rc}")
        try:
            info.wait_for_publish(timeout=self.publish_timeout)
        except (RuntimeError, ValueError) as e:
            raise TransportError(f"publish failed: {e}") from e
        if not info.is_published():
            raise TransportError(f"publish to {topic} not acknowledged within {self.publish_timeout}s")
        log.debug("published command mid=%s topic=%s bytes=%d", info.mid, topic, len(raw))
