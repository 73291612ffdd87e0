"""Repository implementations."""

from payout_service.infrastructure.repositories.account import (
    BankAccountRepository,
    ProfileRepository,
    SellerRepository,
)
from payout_service.infrastructure.repositories.idempotency import IdempotencyRepository
from payout_service.infrastructure.repositories.ledger import LedgerRepository
from payout_service.infrastructure.repositories.outbox import OutboxRepository
from payout_service.infrastructure.repositories.payout import PayoutRepository


__all__ = [
    "BankAccountRepository",
    "IdempotencyRepository",
    "LedgerRepository",
    "OutboxRepository",
    "PayoutRepository",
    "ProfileRepository",
    "SellerRepository",
]
