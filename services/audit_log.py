from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Optional, Protocol

from psycopg2.extras import RealDictCursor

from db import as_uuid, get_conn
from app.workflow.model import Actor, TransitionRecord
from app.workflow.statuses import EntityKind
from services.observability import get_request_id

logger = logging.getLogger("catering.audit")

# audit rows keep the table names the portal has always used
_ENTITY_TYPES = {
    EntityKind.QUOTE: "quote_requests",
    EntityKind.INVOICE: "invoices",
}
_KINDS_BY_TYPE = {v: k for k, v in _ENTITY_TYPES.items()}


def write_transition_log(
    conn,
    *,
    entity_kind: EntityKind,
    entity_id: str,
    previous_status: str,
    new_status: str,
    changed_by: str,
    change_reason: str | None = None,
    request_id: str | None = None,
    created_at: datetime | None = None,
) -> str:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO app.workflow_state_log (
              entity_type, entity_id, previous_status, new_status,
              changed_by, change_reason, request_id, created_at
            )
            VALUES (%s, %s::uuid, %s, %s, %s, %s, %s, COALESCE(%s, now()))
            RETURNING id::text;
            """,
            (
                _ENTITY_TYPES[entity_kind],
                entity_id,
                previous_status,
                new_status,
                changed_by,
                change_reason,
                request_id,
                created_at,
            ),
        )
        return cur.fetchone()[0]


class AuditSink(Protocol):
    def append(self, record: TransitionRecord) -> None: ...

    def history(self, kind: EntityKind, entity_id: str) -> list[TransitionRecord]: ...


class PostgresAuditSink:
    def __init__(self, conn_factory: Optional[Callable[[], Any]] = None):
        self._conn_factory = conn_factory or get_conn

    def append(self, record: TransitionRecord) -> None:
        with self._conn_factory() as conn:
            write_transition_log(
                conn,
                entity_kind=record.entity_kind,
                entity_id=record.entity_id,
                previous_status=record.previous_status,
                new_status=record.new_status,
                changed_by=record.actor,
                change_reason=record.reason,
                request_id=record.request_id,
                created_at=record.created_at,
            )

    def history(self, kind: EntityKind, entity_id: str) -> list[TransitionRecord]:
        entity_id = as_uuid(entity_id)
        if entity_id is None:
            return []
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT
                      id::text AS id,
                      entity_type,
                      entity_id::text AS entity_id,
                      previous_status,
                      new_status,
                      changed_by,
                      change_reason,
                      request_id,
                      created_at
                    FROM app.workflow_state_log
                    WHERE entity_type = %s
                      AND entity_id = %s::uuid
                    ORDER BY created_at DESC, seq DESC
                    """,
                    (_ENTITY_TYPES[kind], str(entity_id)),
                )
                rows = cur.fetchall() or []

        return [
            TransitionRecord(
                id=row["id"],
                entity_kind=_KINDS_BY_TYPE[row["entity_type"]],
                entity_id=row["entity_id"],
                previous_status=row["previous_status"],
                new_status=row["new_status"],
                actor=row["changed_by"],
                reason=row.get("change_reason"),
                request_id=row.get("request_id"),
                created_at=row["created_at"],
            )
            for row in rows
        ]


class InMemoryAuditSink:
    def __init__(self):
        self._lock = Lock()
        self._records: list[TransitionRecord] = []

    def append(self, record: TransitionRecord) -> None:
        with self._lock:
            self._records.append(record)

    def history(self, kind: EntityKind, entity_id: str) -> list[TransitionRecord]:
        with self._lock:
            matching = [r for r in self._records if r.entity_kind is kind and r.entity_id == str(entity_id)]
        # insertion order is commit order
        return list(reversed(matching))

    @property
    def records(self) -> list[TransitionRecord]:
        with self._lock:
            return list(self._records)


class AuditLogger:
    """
    Append-only transition history.

    Called only after a status write committed. A failing sink is logged and
    swallowed: the committed status change stands either way.
    """

    def __init__(self, sink: AuditSink, clock: Callable[[], datetime] | None = None):
        self.sink = sink
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def record_transition(
        self,
        kind: EntityKind,
        entity_id: str,
        previous_status,
        new_status,
        actor: Actor,
        reason: str | None = None,
    ) -> TransitionRecord | None:
        record = TransitionRecord(
            entity_kind=kind,
            entity_id=str(entity_id),
            previous_status=getattr(previous_status, "value", previous_status),
            new_status=getattr(new_status, "value", new_status),
            actor=actor.tag,
            reason=reason,
            request_id=get_request_id(),
            created_at=self._clock(),
        )
        try:
            self.sink.append(record)
        except Exception:
            logger.exception(
                "audit append failed kind=%s id=%s %s->%s",
                kind.value, record.entity_id, record.previous_status, record.new_status,
            )
            return None
        return record

    def get_history(self, kind: EntityKind, entity_id: str) -> list[TransitionRecord]:
        return self.sink.history(kind, str(entity_id))
