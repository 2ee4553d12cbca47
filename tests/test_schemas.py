import base64
import json
from datetime import datetime, timezone

import pytest

from hydro_gateway.schemas import PubSubMessage


def encode(body) -> str:
    return base64.b64encode(json.dumps(body).encode()).decode()


def test_to_event_decodes_data_and_publish_time():
    msg = PubSubMessage(
        data=encode({"tdsValue": 650}),
        attributes={"deviceId": "device-1"},
        publishTime="2024-03-01T08:00:00.5Z",
    )

    ev = msg.to_event()

    assert ev.device_id == "device-1"
    assert ev.fields == {"tdsValue": 650}
    assert ev.received_at == datetime(2024, 3, 1, 8, 0, 0, 500000, tzinfo=timezone.utc)


def test_to_event_tolerates_bad_publish_time():
    msg = PubSubMessage(data=encode({}), attributes={"deviceId": "d"}, publishTime="yesterday-ish")

    assert msg.to_event().received_at is None


@pytest.mark.parametrize(
    "msg",
    [
        PubSubMessage(data=encode({"tdsValue": 1})),
        PubSubMessage(data="%%%", attributes={"deviceId": "d"}),
        PubSubMessage(data="!!" + encode({"tdsValue": 1}), attributes={"deviceId": "d"}),
        PubSubMessage(data=encode([1, 2]), attributes={"deviceId": "d"}),
    ],
)
def test_to_event_rejects_unusable_messages(msg):
    with pytest.raises(ValueError):
        msg.to_event()
