from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from payout_service.config import settings
from payout_service.domain.models import MAX_AMOUNT, AdminPayoutView, BalanceSummary, PayoutRequest


# Money leaves the service as a JSON number
JsonAmount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class SubmitPayoutRequest(BaseModel):
    amount: Decimal = Field(gt=0, le=MAX_AMOUNT, allow_inf_nan=False)
    currency: str = Field(default_factory=lambda: settings.default_currency, min_length=3, max_length=10)
    seller_bank_account_id: UUID
    description: str | None = Field(default=None, max_length=500)


class ApprovePayoutRequest(BaseModel):
    id: str = Field(min_length=1)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SummaryView(CamelModel):
    seller_id: str
    balance: JsonAmount
    currency: str
    pending_payouts: JsonAmount
    completed_payouts: JsonAmount

    @classmethod
    def from_domain(cls, summary: BalanceSummary) -> "SummaryView":
        return cls(
            seller_id=summary.seller_id,
            balance=summary.balance,
            currency=summary.currency,
            pending_payouts=summary.pending_payouts,
            completed_payouts=summary.completed_payouts,
        )


class PayoutHistoryItem(BaseModel):
    id: str
    seller_bank_account_id: str
    amount: JsonAmount
    currency: str
    status: str
    description: str | None
    requested_at: datetime
    completed_at: datetime | None

    @classmethod
    def from_domain(cls, payout: PayoutRequest) -> "PayoutHistoryItem":
        return cls(
            id=payout.id,
            seller_bank_account_id=payout.seller_bank_account_id,
            amount=payout.amount,
            currency=payout.currency,
            status=payout.status.value,
            description=payout.description,
            requested_at=payout.requested_at,
            completed_at=payout.completed_at,
        )


class AdminPayoutItem(BaseModel):
    id: str
    amount: JsonAmount
    currency: str
    status: str
    description: str | None
    created_at: datetime
    seller_name: str
    bank_name: str
    iban: str

    @classmethod
    def from_domain(cls, view: AdminPayoutView) -> "AdminPayoutItem":
        return cls(
            id=view.payout.id,
            amount=view.payout.amount,
            currency=view.payout.currency,
            status=view.payout.status.value,
            description=view.payout.description,
            created_at=view.payout.requested_at,
            seller_name=view.seller_name,
            bank_name=view.bank_name,
            iban=view.iban,
        )


class PayoutsOverviewResponse(BaseModel):
    success: bool = True
    summary: SummaryView
    history: list[PayoutHistoryItem]


class SubmitPayoutResponse(CamelModel):
    success: bool = True
    message: str
    payout_request_id: str
    new_balance: JsonAmount


class AdminPayoutsResponse(BaseModel):
    success: bool = True
    payouts: list[AdminPayoutItem]


class ApprovePayoutResponse(BaseModel):
    success: bool = True


class LedgerAuditResponse(CamelModel):
    success: bool = True
    seller_id: str
    entry_count: int
    balance: JsonAmount
