from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from payout_service.application.authorization import authorize, resolve_seller
from payout_service.application.unit_of_work import UnitOfWork
from payout_service.config import settings
from payout_service.domain.exceptions import (
    BankAccountNotFoundError,
    InsufficientBalanceError,
    PayoutNotFoundError,
    PayoutValidationError,
    StoreFailureError,
)
from payout_service.domain.models import (
    ZERO,
    AdminPayoutView,
    BalanceSummary,
    Caller,
    LedgerEntry,
    LedgerEntryType,
    Money,
    PayoutRequest,
    PayoutStatus,
    Role,
    amount_problem,
    replay_ledger,
)
from payout_service.infrastructure.metrics import (
    LEDGER_ENTRIES_TOTAL,
    PAYOUT_APPROVALS_TOTAL,
    PAYOUT_REQUESTED_AMOUNT,
    PAYOUT_REQUESTS_TOTAL,
)


logger = structlog.get_logger()

DEFAULT_PAYOUT_DESCRIPTION = "Seller payout request"


@dataclass
class SubmitPayoutCommand:
    amount: Decimal | None
    seller_bank_account_id: str | None
    currency: str | None = None
    description: str | None = None
    idempotency_key: str | None = None


@dataclass
class SubmitPayoutResult:
    payout_request_id: str
    new_balance: Decimal
    status: PayoutStatus
    replayed: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "payout_request_id": self.payout_request_id,
            "new_balance": str(self.new_balance),
            "status": self.status.value,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "SubmitPayoutResult":
        return cls(
            payout_request_id=data["payout_request_id"],
            new_balance=Decimal(data["new_balance"]),
            status=PayoutStatus(data["status"]),
            replayed=True,
        )


@dataclass
class ApprovePayoutResult:
    payout_id: str
    status: PayoutStatus
    changed: bool


@dataclass
class LedgerAuditResult:
    seller_id: str
    entry_count: int
    balance: Decimal


class PayoutService:
    def __init__(
        self,
        uow: UnitOfWork,
        default_currency: str | None = None,
        idempotency_ttl: timedelta | None = None,
    ) -> None:
        self.uow = uow
        self._default_currency = default_currency or settings.default_currency
        self._idempotency_ttl = idempotency_ttl or timedelta(hours=settings.idempotency_ttl_hours)

    async def get_balance(self, seller_id: str) -> Decimal:
        """Current balance: the snapshot on the seller's newest ledger entry, zero without entries."""
        try:
            latest = await self.uow.ledger.get_latest(seller_id)
        except SQLAlchemyError as e:
            logger.error("balance_lookup_failed", seller_id=seller_id, exc_info=True)
            raise StoreFailureError("balance lookup") from e
        if latest is None:
            return ZERO
        return latest.balance_after_transaction

    async def get_summary(self, caller: Caller | None) -> BalanceSummary:
        async with self.uow:
            seller = await resolve_seller(self.uow, caller)
            balance = await self.get_balance(seller.id)
            try:
                totals = await self.uow.payouts.totals_by_status(seller.id)
            except SQLAlchemyError as e:
                raise StoreFailureError("payout summary") from e

        logger.info("get_summary", seller_id=seller.id, balance=str(balance))
        return BalanceSummary(
            seller_id=seller.id,
            balance=balance,
            currency=self._default_currency,
            pending_payouts=totals.get(PayoutStatus.PENDING_APPROVAL, ZERO),
            completed_payouts=totals.get(PayoutStatus.COMPLETED, ZERO),
        )

    async def get_history(self, caller: Caller | None) -> list[PayoutRequest]:
        async with self.uow:
            seller = await resolve_seller(self.uow, caller)
            try:
                return await self.uow.payouts.list_for_seller(seller.id)
            except SQLAlchemyError as e:
                raise StoreFailureError("payout history") from e

    async def submit_payout(self, caller: Caller | None, cmd: SubmitPayoutCommand) -> SubmitPayoutResult:
        """Create a pending payout request and its ledger debit in one transaction.

        The seller's advisory lock is held from the balance read until commit,
        so concurrent submissions for one seller are applied one after another.
        """
        log = logger.bind(
            amount=str(cmd.amount),
            seller_bank_account_id=cmd.seller_bank_account_id,
            idempotency_key=cmd.idempotency_key,
        )

        try:
            async with self.uow:
                seller = await resolve_seller(self.uow, caller)
                log = log.bind(seller_id=seller.id)
                money = self._validate(cmd)

                await self.uow.ledger.lock_seller(seller.id)

                if cmd.idempotency_key:
                    existing = await self.uow.idempotency.get(seller.id, cmd.idempotency_key)
                    if existing and existing.status == "COMPLETED" and existing.response_data:
                        await self.uow.rollback()
                        log.info("idempotent_replay", payout_request_id=existing.payout_request_id)
                        PAYOUT_REQUESTS_TOTAL.labels(outcome="replayed").inc()
                        return SubmitPayoutResult.from_record(existing.response_data)
                    if not existing:
                        await self.uow.idempotency.create(
                            seller_id=seller.id,
                            key=cmd.idempotency_key,
                            expires_at=datetime.now(UTC) + self._idempotency_ttl,
                        )

                balance = await self.get_balance(seller.id)
                if money.amount > balance:
                    raise InsufficientBalanceError(seller.id, requested=money.amount, available=balance)

                bank_account = await self.uow.bank_accounts.get_for_seller(str(cmd.seller_bank_account_id), seller.id)
                if bank_account is None:
                    raise BankAccountNotFoundError(str(cmd.seller_bank_account_id), seller.id)

                log.info("payout_validated", step="1/3", balance=str(balance))

                payout = PayoutRequest.create(
                    seller_id=seller.id,
                    seller_bank_account_id=bank_account.id,
                    amount=money,
                    description=cmd.description or DEFAULT_PAYOUT_DESCRIPTION,
                )
                await self.uow.payouts.add(payout)

                debit = await self._append_entry(
                    seller_id=seller.id,
                    entry_type=LedgerEntryType.PAYOUT_REQUEST_DEBIT,
                    amount=-money.amount,
                    currency=money.currency,
                    previous_balance=balance,
                    description=payout.description,
                    payout_request_id=payout.id,
                    reference_details={"seller_bank_account_id": bank_account.id},
                )
                log.info(
                    "payout_ledger_debited",
                    step="2/3",
                    payout_request_id=payout.id,
                    balance_after=str(debit.balance_after_transaction),
                )

                await self.uow.outbox.add(
                    aggregate_id=payout.id,
                    event_type="PayoutRequested",
                    payload={
                        "payout_request_id": payout.id,
                        "seller_id": seller.id,
                        "seller_user_id": seller.user_id,
                        "seller_bank_account_id": bank_account.id,
                        "amount": str(payout.amount),
                        "currency": payout.currency,
                        "new_balance": str(debit.balance_after_transaction),
                    },
                )

                result = SubmitPayoutResult(
                    payout_request_id=payout.id,
                    new_balance=debit.balance_after_transaction,
                    status=payout.status,
                )
                if cmd.idempotency_key:
                    await self.uow.idempotency.mark_completed(
                        seller_id=seller.id,
                        key=cmd.idempotency_key,
                        payout_request_id=payout.id,
                        response_data=result.to_record(),
                    )

                await self.uow.commit()
        except SQLAlchemyError as e:
            log.error("payout_store_failure", exc_info=True)
            PAYOUT_REQUESTS_TOTAL.labels(outcome="store_failure").inc()
            raise StoreFailureError("payout submission") from e
        except InsufficientBalanceError as e:
            log.info("payout_declined", reason="INSUFFICIENT_BALANCE", available=str(e.available))
            PAYOUT_REQUESTS_TOTAL.labels(outcome="insufficient_balance").inc()
            raise
        except (BankAccountNotFoundError, PayoutValidationError) as e:
            log.info("payout_declined", reason=type(e).__name__)
            PAYOUT_REQUESTS_TOTAL.labels(outcome="rejected").inc()
            raise

        PAYOUT_REQUESTS_TOTAL.labels(outcome="submitted").inc()
        PAYOUT_REQUESTED_AMOUNT.labels(currency=payout.currency).observe(float(payout.amount))
        log.info("payout_submitted", step="3/3", payout_request_id=payout.id)
        return result

    async def credit_seller(
        self,
        seller_id: str,
        amount: Decimal,
        currency: str | None = None,
        description: str | None = None,
        reference_details: dict[str, Any] | None = None,
        entry_type: LedgerEntryType = LedgerEntryType.ORDER_SETTLEMENT_CREDIT,
    ) -> LedgerEntry:
        """Append a credit (for example an order settlement) to a seller's ledger."""
        money = Money(amount, currency or self._default_currency)
        try:
            async with self.uow:
                await self.uow.ledger.lock_seller(seller_id)
                balance = await self.get_balance(seller_id)
                entry = await self._append_entry(
                    seller_id=seller_id,
                    entry_type=entry_type,
                    amount=money.amount,
                    currency=money.currency,
                    previous_balance=balance,
                    description=description,
                    reference_details=reference_details,
                )
                await self.uow.commit()
        except SQLAlchemyError as e:
            logger.error("ledger_credit_failed", seller_id=seller_id, exc_info=True)
            raise StoreFailureError("ledger credit") from e

        logger.info(
            "ledger_credited",
            seller_id=seller_id,
            entry_id=entry.id,
            amount=str(entry.amount),
            balance_after=str(entry.balance_after_transaction),
        )
        return entry

    async def approve_payout(self, caller: Caller | None, payout_id: str | None) -> ApprovePayoutResult:
        """Mark a payout request COMPLETED.

        Approving an already completed request succeeds without writing anything.
        """
        if not payout_id:
            raise PayoutValidationError({"id": "Payout request id is required"})

        log = logger.bind(payout_id=payout_id)
        try:
            async with self.uow:
                profile = await authorize(self.uow, caller, Role.ADMIN)
                log = log.bind(admin_id=profile.user_id)

                completed_at = datetime.now(UTC)
                transitioned = await self.uow.payouts.mark_completed(payout_id, completed_at)
                payout = await self.uow.payouts.get(payout_id)
                if payout is None:
                    raise PayoutNotFoundError(payout_id)

                if not transitioned:
                    await self.uow.rollback()
                    log.info("payout_already_completed", status=payout.status.value)
                    PAYOUT_APPROVALS_TOTAL.labels(outcome="already_completed").inc()
                    return ApprovePayoutResult(payout_id=payout_id, status=payout.status, changed=False)

                await self.uow.outbox.add(
                    aggregate_id=payout.id,
                    event_type="PayoutCompleted",
                    payload={
                        "payout_request_id": payout.id,
                        "seller_id": payout.seller_id,
                        "amount": str(payout.amount),
                        "currency": payout.currency,
                        "approved_by": profile.user_id,
                        "completed_at": completed_at.isoformat(),
                    },
                )
                await self.uow.commit()
        except SQLAlchemyError as e:
            log.error("payout_approval_store_failure", exc_info=True)
            PAYOUT_APPROVALS_TOTAL.labels(outcome="store_failure").inc()
            raise StoreFailureError("payout approval") from e

        PAYOUT_APPROVALS_TOTAL.labels(outcome="completed").inc()
        log.info("payout_approved", status=PayoutStatus.COMPLETED.value)
        return ApprovePayoutResult(payout_id=payout_id, status=PayoutStatus.COMPLETED, changed=True)

    async def list_payouts(self, caller: Caller | None) -> list[AdminPayoutView]:
        async with self.uow:
            await authorize(self.uow, caller, Role.ADMIN)
            try:
                return await self.uow.payouts.list_all_with_details()
            except SQLAlchemyError as e:
                raise StoreFailureError("payout listing") from e

    async def audit_ledger(self, caller: Caller | None, seller_id: str) -> LedgerAuditResult:
        """Replay a seller's full ledger and verify every balance snapshot."""
        async with self.uow:
            await authorize(self.uow, caller, Role.ADMIN)
            try:
                entries = await self.uow.ledger.list_for_seller(seller_id)
            except SQLAlchemyError as e:
                raise StoreFailureError("ledger audit") from e

        balance = replay_ledger(entries)
        logger.info("ledger_audited", seller_id=seller_id, entry_count=len(entries), balance=str(balance))
        return LedgerAuditResult(seller_id=seller_id, entry_count=len(entries), balance=balance)

    def _validate(self, cmd: SubmitPayoutCommand) -> Money:
        errors: dict[str, str] = {}

        amount = _to_decimal(cmd.amount)
        problem = "Amount must be a positive number" if amount is None else amount_problem(amount)
        if problem is not None:
            errors["amount"] = problem

        currency = self._default_currency if cmd.currency is None else cmd.currency.strip()
        if len(currency) < 3:
            errors["currency"] = "Currency must be at least 3 characters"

        if not cmd.seller_bank_account_id:
            errors["seller_bank_account_id"] = "A bank account is required"

        if errors or amount is None:
            raise PayoutValidationError(errors)
        return Money(amount, currency)

    async def _append_entry(
        self,
        seller_id: str,
        entry_type: LedgerEntryType,
        amount: Decimal,
        currency: str,
        previous_balance: Decimal,
        description: str | None = None,
        payout_request_id: str | None = None,
        reference_details: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        entry = LedgerEntry.create(
            seller_id=seller_id,
            entry_type=entry_type,
            amount=amount,
            currency=currency,
            previous_balance=previous_balance,
            description=description,
            payout_request_id=payout_request_id,
            reference_details=reference_details,
        )
        await self.uow.ledger.add(entry)
        LEDGER_ENTRIES_TOTAL.labels(entry_type=entry_type.value).inc()
        return entry


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount
