import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from .clock import Clock, SystemClock
from .db import get_session
from .models import ArchiveCursor, HistoryRecord, LatestState

log = logging.getLogger("store")

# the sqlite3 driver raises some conversion errors without SQLAlchemy wrapping them
STORE_ERRORS = (SQLAlchemyError, OverflowError)

class PersistenceError(Exception):
    """A read or write against the telemetry store failed."""

class TelemetryStore:
    """Latest-state and history rows. Every timestamp comes from ``clock``."""

    def __init__(self, engine: Engine, clock: Optional[Clock] = None) -> None:
        self._engine = engine
        self.clock: Clock = clock or SystemClock()

    def now(self) -> datetime:
        return self.clock.now()

    def write_latest(self, device_id: str, fields: Mapping[str, Any]) -> LatestState:
        """Overwrite the device's latest-state row, creating it if needed."""
        ts = self.clock.now()
        try:
            with get_session(self._engine) as session:
                row = session.get(LatestState, device_id)
                if row is None:
                    row = LatestState(device_id=device_id, data=dict(fields), timestamp=ts)
                else:
                    row.data = dict(fields)
                    row.timestamp = ts
                session.add(row)
                session.commit()
                return row
        except STORE_ERRORS as e:
            raise PersistenceError(f"latest write failed for {device_id}: {e}") from e

    def get_latest(self, device_id: str) -> LatestState | None:
        try:
            with get_session(self._engine) as session:
                return session.get(LatestState, device_id)
        except STORE_ERRORS as e:
            raise PersistenceError(f"latest read failed for {device_id}: {e}") from e

    def history_exists_since(self, cutoff: datetime, device_id: str | None = None) -> bool:
        """True if any history row is strictly newer than ``cutoff``."""
        stmt = select(HistoryRecord.id).where(HistoryRecord.timestamp > cutoff)
        if device_id is not None:
            stmt = stmt.where(HistoryRecord.device_id == device_id)
        try:
            with get_session(self._engine) as session:
                return session.exec(stmt.limit(1)).first() is not None
        except STORE_ERRORS as e:
            raise PersistenceError(f"history query failed: {e}") from e

    def append_history(
        self,
        device_id: str,
        fields: Mapping[str, Any],
        timestamp: datetime | None = None,
    ) -> HistoryRecord:
        rec = HistoryRecord(device_id=device_id, data=dict(fields), timestamp=timestamp or self.clock.now())
        try:
            with get_session(self._engine) as session:
                session.add(rec)
                session.commit()
                return rec
        except STORE_ERRORS as e:
            raise PersistenceError(f"history append failed for {device_id}: {e}") from e

    def archive_if_quiet(
        self,
        scope: str,
        device_id: str,
        fields: Mapping[str, Any],
        window: timedelta,
    ) -> HistoryRecord | None:
        """Append a history row unless one was archived for ``scope`` within ``window``.

        The cursor row for ``scope`` is compare-and-set against the value read
        at the start, so two writers racing on the same window cannot both
        append. Returns the new row, or None when skipped.
        """
        now = self.clock.now()
        try:
            with get_session(self._engine) as session:
                cursor = session.get(ArchiveCursor, scope)
                if cursor is None:
                    session.add(ArchiveCursor(scope=scope, last_archived_at=now))
                    session.flush()
                else:
                    seen = cursor.last_archived_at
                    if seen > now - window:
                        return None
                    result = session.connection().execute(
                        update(ArchiveCursor)
                        .where(ArchiveCursor.scope == scope)
                        .where(ArchiveCursor.last_archived_at == seen)
                        .values(last_archived_at=now)
                    )
                    if result.rowcount != 1:
                        session.rollback()
                        log.info("archive cursor for %s moved concurrently, skipping", scope)
                        return None
                rec = HistoryRecord(device_id=device_id, data=dict(fields), timestamp=now)
                session.add(rec)
                session.commit()
                return rec
        except IntegrityError:
            # another writer created the cursor first
            log.info("archive cursor for %s created concurrently, skipping", scope)
            return None
        except STORE_ERRORS as e:
            raise PersistenceError(f"conditional archive failed for {device_id}: {e}") from e
