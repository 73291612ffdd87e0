import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Row, text
from sqlalchemy.ext.asyncio import AsyncSession

from payout_service.domain.models import OutboxEvent


PAYOUT_AGGREGATE = "PayoutRequest"


def _to_event(row: Row[Any]) -> OutboxEvent:
    payload = row.payload
    if isinstance(payload, str):
        payload = json.loads(payload)
    return OutboxEvent(
        id=row.id,
        aggregate_type=row.aggregate_type,
        aggregate_id=row.aggregate_id,
        event_type=row.event_type,
        payload=payload,
        created_at=row.created_at,
        published_at=row.published_at,
        retry_count=row.retry_count,
    )


class OutboxRepository:
    """Payout events waiting to be published, written in the caller's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        event_type: str,
        aggregate_id: str,
        payload: dict[str, Any],
        aggregate_type: str = PAYOUT_AGGREGATE,
    ) -> OutboxEvent:
        event = OutboxEvent.create(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=payload,
        )
        await self._session.execute(
            text("""
                INSERT INTO outbox (id, aggregate_type, aggregate_id, event_type, payload, created_at)
                VALUES (:id, :aggregate_type, :aggregate_id, :event_type, :payload, :created_at)
            """),
            {
                "id": event.id,
                "aggregate_type": event.aggregate_type,
                "aggregate_id": event.aggregate_id,
                "event_type": event.event_type,
                # Decimal amounts are already strings; default=str covers datetimes
                "payload": json.dumps(event.payload, default=str),
                "created_at": event.created_at,
            },
        )
        return event

    async def get_unpublished(self, limit: int = 100) -> list[OutboxEvent]:
        """Oldest unpublished events, row-locked so parallel processors skip each other's batch."""
        result = await self._session.execute(
            text("""
                SELECT id, aggregate_type, aggregate_id, event_type, payload,
                       created_at, published_at, retry_count
                FROM outbox
                WHERE published_at IS NULL
                ORDER BY created_at, id
                LIMIT :limit
                FOR UPDATE SKIP LOCKED
            """),
            {"limit": limit},
        )
        return [_to_event(row) for row in result.fetchall()]

    async def count_unpublished(self) -> int:
        result = await self._session.execute(text("SELECT COUNT(*) FROM outbox WHERE published_at IS NULL"))
        return int(result.scalar_one())

    async def mark_published(self, event_ids: list[str], published_at: datetime | None = None) -> None:
        if not event_ids:
            return
        await self._session.execute(
            text("UPDATE outbox SET published_at = :published_at WHERE id = ANY(:ids)"),
            {"ids": event_ids, "published_at": published_at or datetime.now(UTC)},
        )

    async def increment_retry_count(self, event_id: str) -> int:
        """Record a failed publish attempt. Returns the new attempt count."""
        result = await self._session.execute(
            text("""
                UPDATE outbox
                SET retry_count = retry_count + 1
                WHERE id = :id
                RETURNING retry_count
            """),
            {"id": event_id},
        )
        return int(result.scalar_one())
