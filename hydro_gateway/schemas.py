import base64
import binascii
import json
from datetime import datetime
from typing import Any

from dateutil import parser as dtparser
from pydantic import BaseModel, Field

from .ingestor import TelemetryEvent

class CommandRequest(BaseModel):
    deviceId: str = Field(min_length=1)
    payload: Any = None

class CommandResponse(BaseModel):
    status: str
    deviceId: str

class LatestStateOut(BaseModel):
    deviceId: str
    initialized: Any = None
    elapsedDays: Any = None
    tdsValue: Any = None
    phValue: Any = None
    temperature: Any = None
    humidity: Any = None
    tankLevel: Any = None
    timestamp: datetime

class PubSubMessage(BaseModel):
    data: str | None = None
    attributes: dict[str, str] = {}
    messageId: str | None = None
    publishTime: str | None = None

    def to_event(self) -> TelemetryEvent:
        """Decode into a TelemetryEvent; ValueError if the message is unusable."""
        device_id = self.attributes.get("deviceId")
        if not device_id:
            raise ValueError("message has no deviceId attribute")
        try:
            body = json.loads(base64.b64decode(self.data, validate=True)) if self.data else {}
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"undecodable data: {e}") from e
        if not isinstance(body, dict):
            raise ValueError("data is not a JSON object")

        received_at = None
        if self.publishTime:
            try:
                received_at = dtparser.isoparse(self.publishTime)
            except ValueError:
                received_at = None
        return TelemetryEvent(device_id=device_id, fields=body, received_at=received_at)

class PushEnvelope(BaseModel):
    message: PubSubMessage
    subscription: str | None = None
