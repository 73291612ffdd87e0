"""Domain layer - ledger, payout requests and their rules."""

from payout_service.domain.exceptions import (
    BankAccountNotFoundError,
    DomainError,
    ForbiddenError,
    InsufficientBalanceError,
    LedgerIntegrityError,
    NotFoundError,
    PayoutNotFoundError,
    PayoutValidationError,
    SellerNotFoundError,
    StoreFailureError,
    UnauthorizedError,
)
from payout_service.domain.models import (
    AdminPayoutView,
    BalanceSummary,
    Caller,
    IdempotencyRecord,
    LedgerEntry,
    LedgerEntryType,
    Money,
    OutboxEvent,
    PayoutRequest,
    PayoutStatus,
    Profile,
    Role,
    Seller,
    SellerBankAccount,
    replay_ledger,
)


__all__ = [
    "AdminPayoutView",
    "BalanceSummary",
    "BankAccountNotFoundError",
    "Caller",
    "DomainError",
    "ForbiddenError",
    "IdempotencyRecord",
    "InsufficientBalanceError",
    "LedgerEntry",
    "LedgerEntryType",
    "LedgerIntegrityError",
    "Money",
    "NotFoundError",
    "OutboxEvent",
    "PayoutNotFoundError",
    "PayoutRequest",
    "PayoutStatus",
    "PayoutValidationError",
    "Profile",
    "Role",
    "Seller",
    "SellerBankAccount",
    "SellerNotFoundError",
    "StoreFailureError",
    "UnauthorizedError",
    "replay_ledger",
]
