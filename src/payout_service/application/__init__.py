"""Application layer - payout use cases."""

from payout_service.application.authorization import authorize, resolve_seller
from payout_service.application.services import (
    ApprovePayoutResult,
    LedgerAuditResult,
    PayoutService,
    SubmitPayoutCommand,
    SubmitPayoutResult,
)
from payout_service.application.unit_of_work import UnitOfWork


__all__ = [
    "ApprovePayoutResult",
    "LedgerAuditResult",
    "PayoutService",
    "SubmitPayoutCommand",
    "SubmitPayoutResult",
    "UnitOfWork",
    "authorize",
    "resolve_seller",
]
