from typing import Any, Optional
from datetime import datetime
from sqlmodel import SQLModel, Field, Column, JSON

# telemetry snapshots are stored as received, keyed by the device's field names

class LatestState(SQLModel, table=True):
    device_id: str = Field(primary_key=True)
    data: dict[str, Any] = Field(sa_column=Column(JSON))
    timestamp: datetime

class HistoryRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    device_id: str = Field(index=True)
    data: dict[str, Any] = Field(sa_column=Column(JSON))
    timestamp: datetime = Field(index=True)

class ArchiveCursor(SQLModel, table=True):
    # one row per dedup scope ("*" for the whole fleet, else a device id)
    scope: str = Field(primary_key=True)
    last_archived_at: datetime
