"""Shared pytest fixtures for payout service tests."""

import copy
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from payout_service.application.unit_of_work import UnitOfWork
from payout_service.domain.models import (
    ZERO,
    AdminPayoutView,
    Caller,
    IdempotencyRecord,
    LedgerEntry,
    LedgerEntryType,
    OutboxEvent,
    PayoutRequest,
    PayoutStatus,
    Profile,
    Role,
    Seller,
    SellerBankAccount,
)


SELLER_USER_ID = "user-seller-001"
ADMIN_USER_ID = "user-admin-001"
SELLER_ID = "seller-001"
BANK_ACCOUNT_ID = "8a6e0804-2bd0-4672-b79d-d97027f9071a"


@pytest.fixture
def mock_profile_repository() -> AsyncMock:
    """Create mock ProfileRepository."""
    repo = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def mock_seller_repository() -> AsyncMock:
    """Create mock SellerRepository."""
    repo = AsyncMock()
    repo.get_by_user_id = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def mock_bank_account_repository() -> AsyncMock:
    """Create mock BankAccountRepository."""
    repo = AsyncMock()
    repo.get_for_seller = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def mock_ledger_repository() -> AsyncMock:
    """Create mock LedgerRepository."""
    repo = AsyncMock()
    repo.lock_seller = AsyncMock(return_value=None)
    repo.add = AsyncMock(return_value=None)
    repo.get_latest = AsyncMock(return_value=None)
    repo.list_for_seller = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_payout_repository() -> AsyncMock:
    """Create mock PayoutRepository."""
    repo = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    repo.add = AsyncMock(return_value=None)
    repo.list_for_seller = AsyncMock(return_value=[])
    repo.list_all_with_details = AsyncMock(return_value=[])
    repo.totals_by_status = AsyncMock(return_value={status: ZERO for status in PayoutStatus})
    repo.mark_completed = AsyncMock(return_value=False)
    return repo


@pytest.fixture
def mock_idempotency_repository() -> AsyncMock:
    """Create mock IdempotencyRepository."""
    repo = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    repo.create = AsyncMock(return_value=None)
    repo.mark_completed = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def mock_outbox_repository() -> AsyncMock:
    """Create mock OutboxRepository."""
    repo = AsyncMock()
    repo.add = AsyncMock(return_value=MagicMock())
    repo.get_unpublished = AsyncMock(return_value=[])
    repo.mark_published = AsyncMock(return_value=None)
    repo.increment_retry_count = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def mock_uow(
    mock_profile_repository: AsyncMock,
    mock_seller_repository: AsyncMock,
    mock_bank_account_repository: AsyncMock,
    mock_ledger_repository: AsyncMock,
    mock_payout_repository: AsyncMock,
    mock_idempotency_repository: AsyncMock,
    mock_outbox_repository: AsyncMock,
) -> AsyncMock:
    """Create mock Unit of Work with all repositories."""
    uow = AsyncMock(spec=UnitOfWork)
    uow.profiles = mock_profile_repository
    uow.sellers = mock_seller_repository
    uow.bank_accounts = mock_bank_account_repository
    uow.ledger = mock_ledger_repository
    uow.payouts = mock_payout_repository
    uow.idempotency = mock_idempotency_repository
    uow.outbox = mock_outbox_repository
    uow.commit = AsyncMock(return_value=None)
    uow.rollback = AsyncMock(return_value=None)

    # Configure async context manager
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock(return_value=None)

    return uow


@pytest.fixture
def seller_caller() -> Caller:
    return Caller(user_id=SELLER_USER_ID, email="seller@example.com")


@pytest.fixture
def admin_caller() -> Caller:
    return Caller(user_id=ADMIN_USER_ID, email="admin@example.com")


@pytest.fixture
def sample_seller() -> Seller:
    """Create sample seller owned by the seller caller."""
    return Seller(id=SELLER_ID, user_id=SELLER_USER_ID, store_name="Anatolia Ceramics")


@pytest.fixture
def sample_bank_account() -> SellerBankAccount:
    """Create sample bank account belonging to the sample seller."""
    return SellerBankAccount(
        id=BANK_ACCOUNT_ID,
        seller_id=SELLER_ID,
        bank_name="Ziraat Bankasi",
        account_holder_name="Ayse Yilmaz",
        iban="TR330006100519786457841326",
        is_default=True,
        is_verified=True,
    )


@pytest.fixture
def admin_profile() -> Profile:
    return Profile(user_id=ADMIN_USER_ID, role=Role.ADMIN, full_name="Ops Admin")


@pytest.fixture
def seller_profile() -> Profile:
    return Profile(user_id=SELLER_USER_ID, role=Role.SELLER, full_name="Ayse Yilmaz")


@pytest.fixture
def sample_completed_idempotency_record() -> IdempotencyRecord:
    """Create sample completed idempotency record."""
    return IdempotencyRecord(
        key="existing-idempotency-key",
        status="COMPLETED",
        payout_request_id="01HZX3Q8N6C5Y4T8M1R2P3S4V5",
        response_data={
            "payout_request_id": "01HZX3Q8N6C5Y4T8M1R2P3S4V5",
            "new_balance": "600.00",
            "status": "PENDING_APPROVAL",
        },
        created_at=datetime.now(UTC),
        expires_at=datetime.now(UTC),
    )


def create_ledger_entry(
    balance_after: str,
    amount: str | None = None,
    seller_id: str = SELLER_ID,
    entry_type: LedgerEntryType = LedgerEntryType.ORDER_SETTLEMENT_CREDIT,
) -> LedgerEntry:
    """Helper to create a LedgerEntry carrying the given balance snapshot."""
    return LedgerEntry.create(
        seller_id=seller_id,
        entry_type=entry_type,
        amount=Decimal(amount if amount is not None else balance_after),
        currency="TRY",
        previous_balance=Decimal(balance_after) - Decimal(amount if amount is not None else balance_after),
    )


def create_payout(
    payout_id: str = "01HZX3Q8N6C5Y4T8M1R2P3S4V5",
    amount: str = "400.00",
    status: PayoutStatus = PayoutStatus.PENDING_APPROVAL,
    seller_id: str = SELLER_ID,
) -> PayoutRequest:
    """Helper to create PayoutRequest with custom values."""
    return PayoutRequest(
        id=payout_id,
        seller_id=seller_id,
        seller_bank_account_id=BANK_ACCOUNT_ID,
        amount=Decimal(amount),
        currency="TRY",
        status=status,
        description="Seller payout request",
        requested_at=datetime.now(UTC),
        completed_at=datetime.now(UTC) if status is PayoutStatus.COMPLETED else None,
    )


class _State:
    def __init__(self) -> None:
        self.profiles: dict[str, Profile] = {}
        self.sellers: dict[str, Seller] = {}
        self.bank_accounts: dict[str, SellerBankAccount] = {}
        self.ledger: list[LedgerEntry] = []
        self.payouts: dict[str, PayoutRequest] = {}
        self.idempotency: dict[tuple[str, str], IdempotencyRecord] = {}
        self.outbox: list[OutboxEvent] = []


class InMemoryUnitOfWork:
    """Unit of work over plain dicts with snapshot/restore transactions.

    Writes made inside a transaction are discarded on rollback, and committed
    state is only replaced on commit. ``fail_on`` names a repository method
    (for example ``"outbox.add"``) that raises the given exception.
    """

    def __init__(self) -> None:
        self.committed = _State()
        self._work = copy.deepcopy(self.committed)
        self.fail_on: dict[str, Exception] = {}
        self.commits = 0
        self.profiles = _Repo(self, "profiles")
        self.sellers = _Repo(self, "sellers")
        self.bank_accounts = _Repo(self, "bank_accounts")
        self.ledger = _Repo(self, "ledger")
        self.payouts = _Repo(self, "payouts")
        self.idempotency = _Repo(self, "idempotency")
        self.outbox = _Repo(self, "outbox")

    @property
    def state(self) -> _State:
        return self._work

    def check(self, name: str) -> None:
        if name in self.fail_on:
            raise self.fail_on[name]

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        self._work = copy.deepcopy(self.committed)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            await self.rollback()

    async def commit(self) -> None:
        self.check("commit")
        self.committed = copy.deepcopy(self._work)
        self.commits += 1

    async def rollback(self) -> None:
        self._work = copy.deepcopy(self.committed)

    def seed(
        self,
        profiles: list[Profile] | None = None,
        sellers: list[Seller] | None = None,
        bank_accounts: list[SellerBankAccount] | None = None,
        ledger: list[LedgerEntry] | None = None,
    ) -> None:
        for profile in profiles or []:
            self.committed.profiles[profile.user_id] = profile
        for seller in sellers or []:
            self.committed.sellers[seller.id] = seller
        for account in bank_accounts or []:
            self.committed.bank_accounts[account.id] = account
        self.committed.ledger.extend(ledger or [])
        self._work = copy.deepcopy(self.committed)


class _Repo:
    """Implements the repository methods the payout service calls."""

    def __init__(self, uow: InMemoryUnitOfWork, name: str) -> None:
        self._uow = uow
        self._name = name

    def _check(self, method: str) -> None:
        self._uow.check(f"{self._name}.{method}")

    @property
    def _s(self) -> _State:
        return self._uow.state

    # profiles
    async def get(self, *args: Any) -> Any:
        self._check("get")
        if self._name == "profiles":
            return self._s.profiles.get(args[0])
        if self._name == "payouts":
            return copy.deepcopy(self._s.payouts.get(args[0]))
        if self._name == "idempotency":
            return self._s.idempotency.get((args[0], args[1]))
        raise AttributeError("get")

    # sellers
    async def get_by_user_id(self, user_id: str) -> Seller | None:
        self._check("get_by_user_id")
        return next((s for s in self._s.sellers.values() if s.user_id == user_id), None)

    # bank_accounts
    async def get_for_seller(self, bank_account_id: str, seller_id: str) -> SellerBankAccount | None:
        self._check("get_for_seller")
        account = self._s.bank_accounts.get(bank_account_id)
        if account is None or account.seller_id != seller_id:
            return None
        return account

    # ledger
    async def lock_seller(self, seller_id: str) -> None:
        self._check("lock_seller")

    async def get_latest(self, seller_id: str) -> LedgerEntry | None:
        self._check("get_latest")
        entries = [e for e in self._s.ledger if e.seller_id == seller_id]
        return entries[-1] if entries else None

    async def list_for_seller(self, seller_id: str) -> list[Any]:
        self._check("list_for_seller")
        if self._name == "ledger":
            return [e for e in self._s.ledger if e.seller_id == seller_id]
        payouts = [p for p in self._s.payouts.values() if p.seller_id == seller_id]
        return list(reversed(payouts))

    # ledger, payouts, outbox
    async def add(self, *args: Any, **kwargs: Any) -> Any:
        self._check("add")
        if self._name == "ledger":
            self._s.ledger.append(args[0])
            return None
        if self._name == "payouts":
            self._s.payouts[args[0].id] = copy.deepcopy(args[0])
            return None
        event = OutboxEvent.create(aggregate_type=kwargs.pop("aggregate_type", "PayoutRequest"), **kwargs)
        self._s.outbox.append(event)
        return event

    # payouts
    async def totals_by_status(self, seller_id: str) -> dict[PayoutStatus, Decimal]:
        self._check("totals_by_status")
        totals = {status: ZERO for status in PayoutStatus}
        for payout in self._s.payouts.values():
            if payout.seller_id == seller_id:
                totals[payout.status] += payout.amount
        return totals

    async def list_all_with_details(self) -> list[AdminPayoutView]:
        self._check("list_all_with_details")
        views = []
        for payout in reversed(list(self._s.payouts.values())):
            seller = self._s.sellers.get(payout.seller_id)
            account = self._s.bank_accounts.get(payout.seller_bank_account_id)
            views.append(
                AdminPayoutView(
                    payout=copy.deepcopy(payout),
                    seller_name=seller.store_name if seller else "-",
                    bank_name=account.bank_name if account else "-",
                    iban=account.iban if account else "-",
                )
            )
        return views

    async def mark_completed(self, *args: Any, **kwargs: Any) -> bool:
        self._check("mark_completed")
        if self._name == "idempotency":
            seller_id, key = kwargs["seller_id"], kwargs["key"]
            record = self._s.idempotency[(seller_id, key)]
            record.status = "COMPLETED"
            record.payout_request_id = kwargs["payout_request_id"]
            record.response_data = kwargs.get("response_data")
            return True
        payout_id, completed_at = args
        payout = self._s.payouts.get(payout_id)
        if payout is None or payout.status is not PayoutStatus.PENDING_APPROVAL:
            return False
        payout.status = PayoutStatus.COMPLETED
        payout.completed_at = completed_at
        return True

    # idempotency
    async def create(self, seller_id: str, key: str, expires_at: datetime) -> None:
        self._check("create")
        self._s.idempotency.setdefault(
            (seller_id, key),
            IdempotencyRecord(key=key, status="PENDING", expires_at=expires_at),
        )


@pytest.fixture
def memory_uow(
    seller_profile: Profile,
    admin_profile: Profile,
    sample_seller: Seller,
    sample_bank_account: SellerBankAccount,
) -> InMemoryUnitOfWork:
    """In-memory unit of work seeded with one seller, one admin and a 1000.00 balance."""
    uow = InMemoryUnitOfWork()
    uow.seed(
        profiles=[seller_profile, admin_profile],
        sellers=[sample_seller],
        bank_accounts=[sample_bank_account],
        ledger=[create_ledger_entry("1000.00")],
    )
    return uow
