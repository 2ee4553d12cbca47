import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal, Mapping, Optional

from .store import TelemetryStore

log = logging.getLogger("ingest")

TELEMETRY_FIELDS = (
    "initialized",
    "elapsedDays",
    "tdsValue",
    "phValue",
    "temperature",
    "humidity",
    "tankLevel",
)

FLEET_SCOPE = "*"

ArchiveOutcome = Literal["archived", "skipped"]

@dataclass(frozen=True)
class TelemetryEvent:
    device_id: str
    fields: Mapping[str, Any]
    received_at: Optional[datetime] = None

@dataclass(frozen=True)
class IngestResult:
    latest_written: bool
    # None when the archive step failed
    archived: Optional[bool]

def extract_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the fixed telemetry subset as given; absent keys become None."""
    return {key: payload.get(key) for key in TELEMETRY_FIELDS}

class TelemetryIngestor:
    """Overwrites latest state on every event, archives history at most once per window.

    The two writes are independent: a failure in one is logged and does not
    stop the other, and nothing is raised back to the event source.
    """

    def __init__(
        self,
        store: TelemetryStore,
        window: timedelta = timedelta(hours=1),
        scope: str = "fleet",
        strict: bool = False,
    ) -> None:
        if scope not in ("fleet", "device"):
            raise ValueError(f"unknown history scope {scope!r}")
        self.store = store
        self.window = window
        self.scope = scope
        self.strict = strict

    def update_latest(self, event: TelemetryEvent):
        row = self.store.write_latest(event.device_id, extract_fields(event.fields))
        log.info("latest updated device=%s ts=%s", event.device_id, row.timestamp)
        return row

    def maybe_archive(self, event: TelemetryEvent) -> ArchiveOutcome:
        fields = extract_fields(event.fields)
        per_device = self.scope == "device"

        if self.strict:
            key = event.device_id if per_device else FLEET_SCOPE
            rec = self.store.archive_if_quiet(key, event.device_id, fields, self.window)
            outcome: ArchiveOutcome = "skipped" if rec is None else "archived"
        else:
            # check-then-act; concurrent deliveries may both archive
            now = self.store.now()
            window_start = now - self.window
            if self.store.history_exists_since(window_start, event.device_id if per_device else None):
                outcome = "skipped"
            else:
                self.store.append_history(event.device_id, fields, timestamp=now)
                outcome = "archived"

        log.info("history %s device=%s", outcome, event.device_id)
        return outcome

    def ingest(self, event: TelemetryEvent) -> IngestResult:
        latest_written = True
        try:
            self.update_latest(event)
        except Exception:
            log.exception("latest update failed device=%s", event.device_id)
            latest_written = False

        archived: Optional[bool]
        try:
            archived = self.maybe_archive(event) == "archived"
        except Exception:
            log.exception("history archive failed device=%s", event.device_id)
            archived = None

        return IngestResult(latest_written=latest_written, archived=archived)
