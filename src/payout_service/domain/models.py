from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from ulid import ULID

from payout_service.domain.exceptions import LedgerIntegrityError


CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount a NUMERIC(14, 2) column holds
MAX_AMOUNT = Decimal("999999999999.99")


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def amount_problem(amount: Decimal) -> str | None:
    """Return why ``amount`` is not a usable ledger amount, or None when it is."""
    if not amount.is_finite() or amount <= ZERO:
        return "Amount must be a positive number"
    # quantize() overflows the default decimal context far above this bound
    if amount > MAX_AMOUNT or quantize(amount) > MAX_AMOUNT:
        return f"Amount must not exceed {MAX_AMOUNT}"
    if quantize(amount) <= ZERO:
        return "Amount must be a positive number"
    return None


class PayoutStatus(Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    COMPLETED = "COMPLETED"


class LedgerEntryType(Enum):
    PAYOUT_REQUEST_DEBIT = "PAYOUT_REQUEST_DEBIT"
    ORDER_SETTLEMENT_CREDIT = "ORDER_SETTLEMENT_CREDIT"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


class Role(Enum):
    ADMIN = "admin"
    SELLER = "seller"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = "TRY"

    def __post_init__(self) -> None:
        problem = amount_problem(self.amount)
        if problem is not None:
            raise ValueError(problem)
        if len(self.currency.strip()) < 3:
            raise ValueError("Currency must be at least 3 characters")
        object.__setattr__(self, "amount", quantize(self.amount))
        object.__setattr__(self, "currency", self.currency.strip().upper())


@dataclass(frozen=True)
class Caller:
    user_id: str
    email: str | None = None


@dataclass
class Profile:
    user_id: str
    role: Role
    full_name: str | None = None
    email: str | None = None


@dataclass
class Seller:
    id: str
    user_id: str
    store_name: str
    status: str = "ACTIVE"


@dataclass
class SellerBankAccount:
    id: str
    seller_id: str
    bank_name: str
    account_holder_name: str
    iban: str
    currency: str = "TRY"
    is_default: bool = False
    is_verified: bool = False


@dataclass
class LedgerEntry:
    id: str
    seller_id: str
    entry_type: LedgerEntryType
    amount: Decimal
    currency: str
    balance_after_transaction: Decimal
    description: str | None = None
    payout_request_id: str | None = None
    reference_details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(
        cls,
        seller_id: str,
        entry_type: LedgerEntryType,
        amount: Decimal,
        currency: str,
        previous_balance: Decimal,
        description: str | None = None,
        payout_request_id: str | None = None,
        reference_details: dict[str, Any] | None = None,
    ) -> "LedgerEntry":
        amount = quantize(amount)
        return cls(
            id=str(ULID()),
            seller_id=seller_id,
            entry_type=entry_type,
            amount=amount,
            currency=currency,
            balance_after_transaction=quantize(previous_balance + amount),
            description=description,
            payout_request_id=payout_request_id,
            reference_details=reference_details or {},
        )


@dataclass
class PayoutRequest:
    id: str
    seller_id: str
    seller_bank_account_id: str
    amount: Decimal
    currency: str
    status: PayoutStatus
    description: str | None = None
    requested_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @classmethod
    def create(
        cls,
        seller_id: str,
        seller_bank_account_id: str,
        amount: Money,
        description: str | None = None,
    ) -> "PayoutRequest":
        return cls(
            id=str(ULID()),
            seller_id=seller_id,
            seller_bank_account_id=seller_bank_account_id,
            amount=amount.amount,
            currency=amount.currency,
            status=PayoutStatus.PENDING_APPROVAL,
            description=description,
        )


@dataclass
class AdminPayoutView:
    payout: PayoutRequest
    seller_name: str
    bank_name: str
    iban: str


@dataclass
class BalanceSummary:
    seller_id: str
    balance: Decimal
    currency: str
    pending_payouts: Decimal = ZERO
    completed_payouts: Decimal = ZERO


@dataclass
class IdempotencyRecord:
    key: str
    status: str
    payout_request_id: str | None = None
    response_data: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None


@dataclass
class OutboxEvent:
    id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    published_at: datetime | None = None
    retry_count: int = 0

    @classmethod
    def create(
        cls,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict[str, Any],
    ) -> "OutboxEvent":
        return cls(
            id=str(ULID()),
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=payload,
        )


def replay_ledger(entries: Iterable[LedgerEntry]) -> Decimal:
    """Recompute a seller's balance from zero and check every snapshot on the way.

    ``entries`` must be in creation order. Returns the recomputed balance.
    """
    running = ZERO
    for entry in entries:
        running = quantize(running + entry.amount)
        if entry.balance_after_transaction != running:
            raise LedgerIntegrityError(entry.id, expected=running, actual=entry.balance_after_transaction)
    return running
