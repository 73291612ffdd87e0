import json
from typing import Any

from sqlalchemy import Row, text
from sqlalchemy.ext.asyncio import AsyncSession

from payout_service.domain.models import LedgerEntry, LedgerEntryType


_COLUMNS = """
    id, seller_id, payout_request_id, transaction_type, amount, currency,
    description, balance_after_transaction, reference_details, created_at
"""


def _load_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        return dict(json.loads(value))
    return dict(value)


def _to_entry(row: Row[Any]) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        seller_id=row.seller_id,
        payout_request_id=row.payout_request_id,
        entry_type=LedgerEntryType(row.transaction_type),
        amount=row.amount,
        currency=row.currency,
        description=row.description,
        balance_after_transaction=row.balance_after_transaction,
        reference_details=_load_json(row.reference_details),
        created_at=row.created_at,
    )


class LedgerRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def lock_seller(self, seller_id: str) -> None:
        """Serialize ledger writers for one seller until the transaction ends."""
        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(hashtextextended(:lock_key, 0))"),
            {"lock_key": f"seller_ledger:{seller_id}"},
        )

    async def add(self, entry: LedgerEntry) -> None:
        await self._session.execute(
            text("""
                INSERT INTO seller_ledger_entries
                    (id, seller_id, payout_request_id, transaction_type, amount,
                     currency, description, balance_after_transaction,
                     reference_details, created_at)
                VALUES
                    (:id, :seller_id, :payout_request_id, :transaction_type, :amount,
                     :currency, :description, :balance_after_transaction,
                     :reference_details, :created_at)
            """),
            {
                "id": entry.id,
                "seller_id": entry.seller_id,
                "payout_request_id": entry.payout_request_id,
                "transaction_type": entry.entry_type.value,
                "amount": entry.amount,
                "currency": entry.currency,
                "description": entry.description,
                "balance_after_transaction": entry.balance_after_transaction,
                "reference_details": json.dumps(entry.reference_details),
                "created_at": entry.created_at,
            },
        )

    async def get_latest(self, seller_id: str) -> LedgerEntry | None:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM seller_ledger_entries
                WHERE seller_id = :seller_id
                ORDER BY created_at DESC, id DESC
                LIMIT 1
            """),
            {"seller_id": seller_id},
        )
        row = result.fetchone()
        if not row:
            return None
        return _to_entry(row)

    async def list_for_seller(self, seller_id: str) -> list[LedgerEntry]:
        result = await self._session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM seller_ledger_entries
                WHERE seller_id = :seller_id
                ORDER BY created_at, id
            """),
            {"seller_id": seller_id},
        )
        return [_to_entry(row) for row in result.fetchall()]

