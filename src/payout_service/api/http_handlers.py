from typing import Annotated

from fastapi import APIRouter, Depends, Header

from payout_service.api.dependencies import get_caller, get_payout_service
from payout_service.api.schemas import (
    AdminPayoutItem,
    AdminPayoutsResponse,
    ApprovePayoutRequest,
    ApprovePayoutResponse,
    LedgerAuditResponse,
    PayoutHistoryItem,
    PayoutsOverviewResponse,
    SubmitPayoutRequest,
    SubmitPayoutResponse,
    SummaryView,
)
from payout_service.application.services import PayoutService, SubmitPayoutCommand
from payout_service.domain.models import Caller


SELLER_PREFIX = "/api/seller"
ADMIN_PREFIX = "/api/admin"

seller_router = APIRouter(prefix=SELLER_PREFIX, tags=["seller-payouts"])
admin_router = APIRouter(prefix=ADMIN_PREFIX, tags=["admin-payouts"])

CallerDep = Annotated[Caller, Depends(get_caller)]
ServiceDep = Annotated[PayoutService, Depends(get_payout_service)]


@seller_router.get("/payouts", response_model=PayoutsOverviewResponse)
async def get_seller_payouts(caller: CallerDep, service: ServiceDep) -> PayoutsOverviewResponse:
    summary = await service.get_summary(caller)
    history = await service.get_history(caller)
    return PayoutsOverviewResponse(
        summary=SummaryView.from_domain(summary),
        history=[PayoutHistoryItem.from_domain(p) for p in history],
    )


@seller_router.post("/payouts", response_model=SubmitPayoutResponse)
async def submit_seller_payout(
    body: SubmitPayoutRequest,
    caller: CallerDep,
    service: ServiceDep,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key", max_length=255)] = None,
) -> SubmitPayoutResponse:
    result = await service.submit_payout(
        caller,
        SubmitPayoutCommand(
            amount=body.amount,
            currency=body.currency,
            seller_bank_account_id=str(body.seller_bank_account_id),
            description=body.description,
            idempotency_key=idempotency_key,
        ),
    )
    message = "Payout request already received" if result.replayed else "Payout request created"
    return SubmitPayoutResponse(
        message=message,
        payout_request_id=result.payout_request_id,
        new_balance=result.new_balance,
    )


@admin_router.get("/payouts", response_model=AdminPayoutsResponse)
async def list_payouts(caller: CallerDep, service: ServiceDep) -> AdminPayoutsResponse:
    views = await service.list_payouts(caller)
    return AdminPayoutsResponse(payouts=[AdminPayoutItem.from_domain(v) for v in views])


@admin_router.post("/payouts", response_model=ApprovePayoutResponse)
async def approve_payout(
    body: ApprovePayoutRequest,
    caller: CallerDep,
    service: ServiceDep,
) -> ApprovePayoutResponse:
    await service.approve_payout(caller, body.id)
    return ApprovePayoutResponse()


@admin_router.get("/sellers/{seller_id}/ledger/audit", response_model=LedgerAuditResponse)
async def audit_seller_ledger(seller_id: str, caller: CallerDep, service: ServiceDep) -> LedgerAuditResponse:
    result = await service.audit_ledger(caller, seller_id)
    return LedgerAuditResponse(
        seller_id=result.seller_id,
        entry_count=result.entry_count,
        balance=result.balance,
    )
