"""Transactional outbox: stage events with the writes, deliver them later.

``OutboxPublisher`` writes each event to ``outbox_events`` through the
active ``DB.transaction()``, so an event exists exactly when the write it
announces has committed. ``OutboxRelay`` drains pending rows to a real
publisher at least once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, RootModel
from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError

from orderly.adapters.db.facade import DB
from orderly.adapters.db.models import OutboxEventDB
from orderly.core.errors import PersistenceError, PublishError
from orderly.orders.events import EventPublisher


class StoredPayload(RootModel[dict[str, Any]]):
    """A staged event body re-hydrated for delivery.

    Serializes back to the same JSON document that was staged.
    """


class OutboxPublisher:
    """EventPublisher that stages events in the outbox table."""

    def __init__(self, db: DB) -> None:
        self._db = db

    def publish(self, subject: str, payload: BaseModel) -> None:
        # The savepoint keeps a staging failure from poisoning the write's
        # transaction.
        try:
            with self._db.session() as session, session.begin_nested():
                session.add(
                    OutboxEventDB(
                        subject=subject,
                        payload=payload.model_dump_json(),
                        attempts=0,
                        created_at=datetime.now(UTC),
                    )
                )
        except SQLAlchemyError as exc:
            raise PublishError(f"could not stage {subject} in outbox: {exc}") from exc


@dataclass(frozen=True, slots=True)
class RelayReport:
    delivered: int
    failed: int
    remaining: int


class OutboxRelay:
    """Delivers staged events to a downstream publisher.

    Rows are marked delivered only after the downstream publish returns and
    the batch commits, so a crash mid-batch re-delivers on the next drain.
    Rows that fail ``max_attempts`` times are left in place and no longer retried.
    """

    def __init__(
        self,
        db: DB,
        publisher: EventPublisher,
        *,
        batch_size: int = 100,
        max_attempts: int = 5,
    ) -> None:
        self._db = db
        self._publisher = publisher
        self._batch_size = batch_size
        self._max_attempts = max_attempts

    def drain(self) -> RelayReport:
        """Deliver one batch of pending events."""
        delivered = 0
        failed = 0
        try:
            with self._db.session() as session:
                rows = session.scalars(
                    self._pending_query()
                    .order_by(OutboxEventDB.event_id)
                    .limit(self._batch_size)
                ).all()
                for row in rows:
                    row.attempts += 1
                    try:
                        self._publisher.publish(
                            row.subject, StoredPayload.model_validate_json(row.payload)
                        )
                    except PublishError as exc:
                        row.last_error = str(exc)
                        failed += 1
                        logger.bind(event_id=row.event_id, subject=row.subject).warning(
                            "Outbox delivery failed (attempt {}): {}",
                            row.attempts,
                            exc,
                        )
                        continue
                    row.delivered_at = datetime.now(UTC)
                    row.last_error = None
                    delivered += 1
        except SQLAlchemyError as exc:
            raise PersistenceError("drain outbox", exc) from exc

        remaining = self.pending_count()
        logger.bind(delivered=delivered, failed=failed, remaining=remaining).info(
            "Outbox drained: {} delivered, {} failed, {} remaining",
            delivered,
            failed,
            remaining,
        )
        return RelayReport(delivered=delivered, failed=failed, remaining=remaining)

    def pending_count(self) -> int:
        with self._db.session() as session:
            count = session.scalar(
                select(func.count()).select_from(
                    self._pending_query().subquery()
                )
            )
            return int(count or 0)

    def _pending_query(self) -> Select[tuple[OutboxEventDB]]:
        return select(OutboxEventDB).where(
            OutboxEventDB.delivered_at.is_(None),
            OutboxEventDB.attempts < self._max_attempts,
        )
