from types import TracebackType
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession

from payout_service.infrastructure.repositories import (
    BankAccountRepository,
    IdempotencyRepository,
    LedgerRepository,
    OutboxRepository,
    PayoutRepository,
    ProfileRepository,
    SellerRepository,
)


class UnitOfWork:
    """One database transaction spanning every repository it exposes."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.profiles = ProfileRepository(session)
        self.sellers = SellerRepository(session)
        self.bank_accounts = BankAccountRepository(session)
        self.ledger = LedgerRepository(session)
        self.payouts = PayoutRepository(session)
        self.idempotency = IdempotencyRepository(session)
        self.outbox = OutboxRepository(session)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
