from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from hydro_gateway.clock import FixedClock
from hydro_gateway.db import init_db
from hydro_gateway.models import HistoryRecord
from hydro_gateway.store import TelemetryStore


def history_rows(engine, device_id: str | None = None) -> list[HistoryRecord]:
    stmt = select(HistoryRecord)
    if device_id is not None:
        stmt = stmt.where(HistoryRecord.device_id == device_id)
    with Session(engine) as session:
        return list(session.exec(stmt.order_by(HistoryRecord.timestamp, HistoryRecord.id)).all())


class FakeTransport:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def send_command(self, name: str, binary_data: str) -> None:
        self.calls.append((name, binary_data))
        if self.error is not None:
            raise self.error


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    SQLModel.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(engine, clock) -> TelemetryStore:
    return TelemetryStore(engine, clock)


@pytest.fixture
def sample_reading() -> dict:
    return {
        "initialized": True,
        "elapsedDays": 12,
        "tdsValue": 650,
        "phValue": 6.1,
        "temperature": 27.5,
        "humidity": 60,
        "tankLevel": 80,
    }
