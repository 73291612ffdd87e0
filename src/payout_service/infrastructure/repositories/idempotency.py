import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from payout_service.domain.models import IdempotencyRecord


class IdempotencyRepository:
    """Idempotency keys are scoped per seller so two sellers may reuse the same key."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, seller_id: str, key: str) -> IdempotencyRecord | None:
        result = await self._session.execute(
            text("""
                SELECT key, payout_request_id, response_data, status, created_at, expires_at
                FROM idempotency_keys
                WHERE seller_id = :seller_id AND key = :key AND expires_at > :now
            """),
            {"seller_id": seller_id, "key": key, "now": datetime.now(UTC)},
        )
        row = result.fetchone()
        if not row:
            return None
        response_data = row.response_data
        if isinstance(response_data, str):
            response_data = json.loads(response_data)
        return IdempotencyRecord(
            key=row.key,
            payout_request_id=row.payout_request_id,
            response_data=response_data,
            status=row.status,
            created_at=row.created_at,
            expires_at=row.expires_at,
        )

    async def create(self, seller_id: str, key: str, expires_at: datetime) -> None:
        """Reserve ``key`` for this seller. An expired key is reclaimed."""
        await self._session.execute(
            text("""
                INSERT INTO idempotency_keys (seller_id, key, status, created_at, expires_at)
                VALUES (:seller_id, :key, 'PENDING', :created_at, :expires_at)
                ON CONFLICT (seller_id, key) DO UPDATE
                SET status = 'PENDING',
                    payout_request_id = NULL,
                    response_data = NULL,
                    created_at = EXCLUDED.created_at,
                    expires_at = EXCLUDED.expires_at
                WHERE idempotency_keys.expires_at <= EXCLUDED.created_at
            """),
            {
                "seller_id": seller_id,
                "key": key,
                "created_at": datetime.now(UTC),
                "expires_at": expires_at,
            },
        )

    async def mark_completed(
        self,
        seller_id: str,
        key: str,
        payout_request_id: str,
        response_data: dict[str, Any] | None = None,
    ) -> None:
        await self._session.execute(
            text("""
                UPDATE idempotency_keys
                SET status = 'COMPLETED',
                    payout_request_id = :payout_request_id,
                    response_data = :response_data
                WHERE seller_id = :seller_id AND key = :key
            """),
            {
                "seller_id": seller_id,
                "key": key,
                "payout_request_id": payout_request_id,
                "response_data": json.dumps(response_data) if response_data is not None else None,
            },
        )

