"""Tests for UnitOfWork transaction boundaries."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from payout_service.application.unit_of_work import UnitOfWork


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


class TestUnitOfWork:
    """Tests for UnitOfWork."""

    @pytest.mark.asyncio
    async def test_rolls_back_on_exception(self, session: MagicMock) -> None:
        with pytest.raises(RuntimeError):
            async with UnitOfWork(session):
                raise RuntimeError("boom")

        session.rollback.assert_awaited_once()
        session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_clean_exit_leaves_session_to_its_owner(self, session: MagicMock) -> None:
        """Uncommitted work is discarded when Database.session closes the session."""
        async with UnitOfWork(session) as uow:
            await uow.commit()

        session.commit.assert_awaited_once()
        session.rollback.assert_not_called()

    def test_repositories_share_the_session(self, session: MagicMock) -> None:
        uow = UnitOfWork(session)

        for repo in (uow.profiles, uow.sellers, uow.bank_accounts, uow.ledger, uow.payouts, uow.idempotency, uow.outbox):
            assert repo._session is session
