"""Append-only audit log: the record of who did what, and when.

Every state-changing engine operation appends an AuditEvent here.
Events are immutable once written and are never deleted by the engine.
The log is the only source of historical truth: task records show the
current state, the log shows how it got there.

The log can be persisted to a JSONL file (one canonical JSON object per
line). Each event carries a SHA-256 hash of its canonical form, and the
file is verified on load so a tampered or replayed line is rejected.
"""

from __future__ import annotations

import enum
import hashlib
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from pitchside.errors import StorageUnavailable

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class AuditEventType(str, enum.Enum):
    """Closed taxonomy of audit events.

    The engine emits the task.* ownership/completion events and
    handover.executed. The remaining kinds belong to collaborators that
    share the same log (fixtures, content, user status).
    """
    TASK_CREATED = "task.created"
    TASK_CLAIMED = "task.claimed"
    TASK_COMPLETED = "task.completed"
    TASK_REOPENED = "task.reopened"
    TASK_REASSIGNED = "task.reassigned"
    TASK_BLOCKED = "task.blocked"
    CONTENT_APPROVED = "content.approved"
    CONTENT_PUBLISHED = "content.published"
    FIXTURE_CREATED = "fixture.created"
    FIXTURE_UPDATED = "fixture.updated"
    HANDOVER_EXECUTED = "handover.executed"
    USER_MARKED_UNAVAILABLE = "user.marked_unavailable"
    USER_STATUS_CHANGED = "user.status_changed"


AUDIT_EVENT_LABELS: dict[AuditEventType, str] = {
    AuditEventType.TASK_CREATED: "created a task",
    AuditEventType.TASK_CLAIMED: "claimed a task",
    AuditEventType.TASK_COMPLETED: "completed a task",
    AuditEventType.TASK_REOPENED: "reopened a task",
    AuditEventType.TASK_REASSIGNED: "reassigned a task",
    AuditEventType.TASK_BLOCKED: "marked a task as blocked",
    AuditEventType.CONTENT_APPROVED: "approved content",
    AuditEventType.CONTENT_PUBLISHED: "published content",
    AuditEventType.FIXTURE_CREATED: "created a fixture",
    AuditEventType.FIXTURE_UPDATED: "updated a fixture",
    AuditEventType.HANDOVER_EXECUTED: "executed a handover",
    AuditEventType.USER_MARKED_UNAVAILABLE: "marked themselves unavailable",
    AuditEventType.USER_STATUS_CHANGED: "changed user status",
}


def _canonical_hash(fields: dict[str, Any]) -> str:
    canonical = json.dumps(
        fields, sort_keys=True, ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class AuditEvent:
    """A single immutable audit record.

    The payload is an open map (event-specific data); the event type is
    drawn from the closed AuditEventType set.
    """
    event_id: str
    club_id: str
    actor_id: str
    event_type: AuditEventType
    payload: dict[str, Any]
    created_at: str
    event_hash: str
    fixture_id: Optional[str] = None
    task_id: Optional[str] = None

    @staticmethod
    def create(
        event_id: str,
        club_id: str,
        actor_id: str,
        event_type: AuditEventType,
        payload: dict[str, Any],
        fixture_id: Optional[str] = None,
        task_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> AuditEvent:
        """Create a new event with its canonical hash."""
        ts = (created_at or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)
        return AuditEvent(
            event_id=event_id,
            club_id=club_id,
            actor_id=actor_id,
            event_type=event_type,
            payload=payload,
            created_at=ts,
            event_hash=_canonical_hash({
                "event_id": event_id,
                "club_id": club_id,
                "fixture_id": fixture_id,
                "task_id": task_id,
                "actor_id": actor_id,
                "event_type": event_type.value,
                "payload": payload,
                "created_at": ts,
            }),
            fixture_id=fixture_id,
            task_id=task_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "club_id": self.club_id,
            "fixture_id": self.fixture_id,
            "task_id": self.task_id,
            "actor_id": self.actor_id,
            "event_type": self.event_type.value,
            "payload": self.payload,
            "created_at": self.created_at,
            "event_hash": self.event_hash,
        }


class AuditLog:
    """Append-only audit log with optional JSONL persistence.

    Usage:
        log = AuditLog(Path("data/audit.jsonl"))
        log.record("club-1", "alice", AuditEventType.TASK_CLAIMED,
                   {"task_label": "Kit wash"}, task_id="T-1")
        history = log.list_by_task("T-1")

    Thread-safe: appends are serialised by an internal lock. The lock is
    never held while the caller touches the task store.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[AuditEvent] = []
        self._event_ids: set[str] = set()
        self._storage_path = storage_path
        self._lock = threading.Lock()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)
        self._counter = len(self._events)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def append(self, event: AuditEvent) -> None:
        """Append an event.

        Raises ValueError on a duplicate event_id (replay protection) and
        StorageUnavailable if the durable write fails. The event only
        becomes visible once it is durable.
        """
        with self._lock:
            self._append_locked(event)

    def record(
        self,
        club_id: str,
        actor_id: str,
        event_type: AuditEventType,
        payload: Optional[dict[str, Any]] = None,
        fixture_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> AuditEvent:
        """Build an event with the next id and the current time, and append it."""
        with self._lock:
            self._counter += 1
            # Skip ids taken by append() or by gaps in a recovered file
            while f"AUD-{self._counter:08d}" in self._event_ids:
                self._counter += 1
            event = AuditEvent.create(
                event_id=f"AUD-{self._counter:08d}",
                club_id=club_id,
                actor_id=actor_id,
                event_type=event_type,
                payload=dict(payload or {}),
                fixture_id=fixture_id,
                task_id=task_id,
            )
            self._append_locked(event)
        return event

    def _append_locked(self, event: AuditEvent) -> None:
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")
        if self._storage_path:
            self._append_to_file(event)
        self._events.append(event)
        self._event_ids.add(event.event_id)

    # ------------------------------------------------------------------
    # Read path (oldest first)
    # ------------------------------------------------------------------

    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def list_by_fixture(self, fixture_id: str) -> list[AuditEvent]:
        """All events recorded against a fixture, oldest first."""
        return [e for e in self._events if e.fixture_id == fixture_id]

    def list_by_task(self, task_id: str) -> list[AuditEvent]:
        """All events recorded against a task, oldest first."""
        return [e for e in self._events if e.task_id == task_id]

    def query(
        self,
        club_id: str,
        fixture_id: Optional[str] = None,
        task_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        event_types: Optional[Iterable[AuditEventType]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[AuditEvent]:
        """Filtered, paged view of a club's events, oldest first."""
        types = set(event_types) if event_types else None
        result = [
            e for e in self._events
            if e.club_id == club_id
            and (fixture_id is None or e.fixture_id == fixture_id)
            and (task_id is None or e.task_id == task_id)
            and (actor_id is None or e.actor_id == actor_id)
            and (types is None or e.event_type in types)
        ]
        if offset:
            result = result[offset:]
        if limit is not None:
            result = result[:limit]
        return result

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[AuditEvent]:
        return self._events[-1] if self._events else None

    @staticmethod
    def describe(event: AuditEvent) -> str:
        """Human-readable one-liner, e.g. "alice claimed a task"."""
        return f"{event.actor_id} {AUDIT_EVENT_LABELS[event.event_type]}"

    # ------------------------------------------------------------------
    # File persistence
    # ------------------------------------------------------------------

    def _append_to_file(self, event: AuditEvent) -> None:
        try:
            self._storage_path.parent.mkdir(parents=True, exist_ok=True)
            with self._storage_path.open("a", encoding="utf-8") as f:
                f.write(
                    json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False)
                    + "\n"
                )
        except OSError as e:
            raise StorageUnavailable(f"Audit log write failed: {e}") from e

    def _load_from_file(self, path: Path) -> None:
        """Load events from JSONL with integrity verification.

        Fail-closed: a hash mismatch or a duplicate event ID aborts the
        load with ValueError.
        """
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise StorageUnavailable(f"Audit log read failed: {e}") from e

        for line_num, line in enumerate(lines, 1):
            line = line.strip()
            if not line:
                continue
            data = json.loads(line)
            event_id = data["event_id"]

            if event_id in self._event_ids:
                raise ValueError(
                    f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                )

            expected_hash = _canonical_hash({
                "event_id": data["event_id"],
                "club_id": data["club_id"],
                "fixture_id": data.get("fixture_id"),
                "task_id": data.get("task_id"),
                "actor_id": data["actor_id"],
                "event_type": data["event_type"],
                "payload": data["payload"],
                "created_at": data["created_at"],
            })
            if data["event_hash"] != expected_hash:
                raise ValueError(
                    f"Integrity check failed (line {line_num}): event {event_id} "
                    f"stored hash {data['event_hash']} != computed {expected_hash}"
                )

            self._events.append(AuditEvent(
                event_id=event_id,
                club_id=data["club_id"],
                actor_id=data["actor_id"],
                event_type=AuditEventType(data["event_type"]),
                payload=data["payload"],
                created_at=data["created_at"],
                event_hash=data["event_hash"],
                fixture_id=data.get("fixture_id"),
                task_id=data.get("task_id"),
            ))
            self._event_ids.add(event_id)
