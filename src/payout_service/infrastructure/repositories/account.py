"""Read-only access to identity and seller records owned by other parts of the marketplace."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from payout_service.domain.models import Profile, Role, Seller, SellerBankAccount


class ProfileRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> Profile | None:
        result = await self._session.execute(
            text("""
                SELECT id, role, full_name, email
                FROM profiles
                WHERE id = :id
            """),
            {"id": user_id},
        )
        row = result.fetchone()
        if not row:
            return None
        try:
            role = Role(row.role)
        except ValueError:
            role = Role.CUSTOMER
        return Profile(
            user_id=row.id,
            role=role,
            full_name=row.full_name,
            email=row.email,
        )


class SellerRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_user_id(self, user_id: str) -> Seller | None:
        result = await self._session.execute(
            text("""
                SELECT id, user_id, store_name, status
                FROM sellers
                WHERE user_id = :user_id
            """),
            {"user_id": user_id},
        )
        row = result.fetchone()
        if not row:
            return None
        return Seller(
            id=row.id,
            user_id=row.user_id,
            store_name=row.store_name,
            status=row.status,
        )


class BankAccountRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_seller(self, bank_account_id: str, seller_id: str) -> SellerBankAccount | None:
        result = await self._session.execute(
            text("""
                SELECT id, seller_id, bank_name, account_holder_name, iban,
                       currency, is_default, is_verified
                FROM seller_bank_accounts
                WHERE id = :id AND seller_id = :seller_id
            """),
            {"id": bank_account_id, "seller_id": seller_id},
        )
        row = result.fetchone()
        if not row:
            return None
        return SellerBankAccount(
            id=row.id,
            seller_id=row.seller_id,
            bank_name=row.bank_name,
            account_holder_name=row.account_holder_name,
            iban=row.iban,
            currency=row.currency,
            is_default=row.is_default,
            is_verified=row.is_verified,
        )
