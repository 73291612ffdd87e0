from datetime import datetime
from decimal import Decimal
from typing import Any, cast

from sqlalchemy import CursorResult, Row, text
from sqlalchemy.ext.asyncio import AsyncSession

from payout_service.domain.models import ZERO, AdminPayoutView, PayoutRequest, PayoutStatus


_COLUMNS = """
    id, seller_id, seller_bank_account_id, requested_amount, currency,
    status, description, requested_at, completed_at
"""


def _to_payout(row: Row[Any]) -> PayoutRequest:
    return PayoutRequest(
        id=row.id,
        seller_id=row.seller_id,
        seller_bank_account_id=row.seller_bank_account_id,
        amount=row.requested_amount,
        currency=row.currency,
        status=PayoutStatus(row.status),
        description=row.description,
        requested_at=row.requested_at,
        completed_at=row.completed_at,
    )


class PayoutRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, payout_id: str) -> PayoutRequest | None:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM seller_payout_requests
                WHERE id = :id
            """),
            {"id": payout_id},
        )
        row = result.fetchone()
        if not row:
            return None
        return _to_payout(row)

    async def add(self, payout: PayoutRequest) -> None:
        await self._session.execute(
            text("""
                INSERT INTO seller_payout_requests
                    (id, seller_id, seller_bank_account_id, requested_amount,
                     currency, status, description, requested_at, completed_at)
                VALUES
                    (:id, :seller_id, :seller_bank_account_id, :requested_amount,
                     :currency, :status, :description, :requested_at, :completed_at)
            """),
            {
                "id": payout.id,
                "seller_id": payout.seller_id,
                "seller_bank_account_id": payout.seller_bank_account_id,
                "requested_amount": payout.amount,
                "currency": payout.currency,
                "status": payout.status.value,
                "description": payout.description,
                "requested_at": payout.requested_at,
                "completed_at": payout.completed_at,
            },
        )

    async def list_for_seller(self, seller_id: str) -> list[PayoutRequest]:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM seller_payout_requests
                WHERE seller_id = :seller_id
                ORDER BY requested_at DESC, id DESC
            """),
            {"seller_id": seller_id},
        )
        return [_to_payout(row) for row in result.fetchall()]

    async def list_all_with_details(self) -> list[AdminPayoutView]:
        result = await self._session.execute(
            text("""
                SELECT p.id, p.seller_id, p.seller_bank_account_id, p.requested_amount,
                       p.currency, p.status, p.description, p.requested_at, p.completed_at,
                       s.store_name AS seller_name,
                       b.bank_name AS bank_name,
                       b.iban AS iban
                FROM seller_payout_requests p
                LEFT JOIN sellers s ON s.id = p.seller_id
                LEFT JOIN seller_bank_accounts b ON b.id = p.seller_bank_account_id
                ORDER BY p.requested_at DESC, p.id DESC
            """),
        )
        return [
            AdminPayoutView(
                payout=_to_payout(row),
                seller_name=row.seller_name or "-",
                bank_name=row.bank_name or "-",
                iban=row.iban or "-",
            )
            for row in result.fetchall()
        ]

    async def totals_by_status(self, seller_id: str) -> dict[PayoutStatus, Decimal]:
        result = await self._session.execute(
            text("""
                SELECT status, COALESCE(SUM(requested_amount), 0) AS total
                FROM seller_payout_requests
                WHERE seller_id = :seller_id
                GROUP BY status
            """),
            {"seller_id": seller_id},
        )
        totals = {status: ZERO for status in PayoutStatus}
        for row in result.fetchall():
            totals[PayoutStatus(row.status)] = Decimal(row.total)
        return totals

    async def mark_completed(self, payout_id: str, completed_at: datetime) -> bool:
        """Move a pending payout to COMPLETED. Returns False if no pending row matched."""
        result = cast(
            "CursorResult[Any]",
            await self._session.execute(
                text("""
                    UPDATE seller_payout_requests
                    SET status = :completed, completed_at = :completed_at
                    WHERE id = :id AND status = :pending
                """),
                {
                    "id": payout_id,
                    "completed": PayoutStatus.COMPLETED.value,
                    "pending": PayoutStatus.PENDING_APPROVAL.value,
                    "completed_at": completed_at,
                },
            ),
        )
        return (result.rowcount or 0) > 0
