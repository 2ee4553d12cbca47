import logging
from typing import Any

from .transport import DeviceTransport, device_path, encode_payload

log = logging.getLogger("dispatch")

class CommandDispatcher:
    """Forwards one operator command to one device. No retries, no persistence."""

    def __init__(self, transport: DeviceTransport, project: str, region: str, registry: str) -> None:
        self.transport = transport
        self.project = project
        self.region = region
        self.registry = registry

    def address(self, device_id: str) -> str:
        return device_path(self.project, self.region, self.registry, device_id)

    def dispatch(self, device_id: str, payload: Any) -> bool:
        if not device_id:
            raise ValueError("device_id must be non-empty")

        request = {"name": self.address(device_id), "binaryData": encode_payload(payload)}
        log.info("send command %s payload=%r", request["name"], payload)

        try:
            self.transport.send_command(request["name"], request["binaryData"])
        except Exception:
            # every delivery problem collapses into one failure status
            log.exception("command to %s failed", request["name"])
            return False
        return True
