"""Caller identity and role checks shared by every payout operation."""

import structlog

from payout_service.application.unit_of_work import UnitOfWork
from payout_service.domain.exceptions import ForbiddenError, SellerNotFoundError, UnauthorizedError
from payout_service.domain.models import Caller, Profile, Role, Seller


logger = structlog.get_logger()


def require_caller(caller: Caller | None) -> Caller:
    if caller is None or not caller.user_id:
        raise UnauthorizedError()
    return caller


async def authorize(uow: UnitOfWork, caller: Caller | None, required_role: Role) -> Profile:
    """Return the caller's profile if it carries ``required_role``.

    Raises UnauthorizedError when there is no caller or no profile for it,
    ForbiddenError when the profile has a different role.
    """
    caller = require_caller(caller)
    profile = await uow.profiles.get(caller.user_id)
    if profile is None:
        raise UnauthorizedError("No profile found for the current user")
    if profile.role is not required_role:
        logger.warning(
            "authorization_denied",
            user_id=caller.user_id,
            role=profile.role.value,
            required_role=required_role.value,
        )
        raise ForbiddenError(required_role.value)
    return profile


async def resolve_seller(uow: UnitOfWork, caller: Caller | None) -> Seller:
    """Authorize the caller as a seller and return the seller record it owns."""
    profile = await authorize(uow, caller, Role.SELLER)
    seller = await uow.sellers.get_by_user_id(profile.user_id)
    if seller is None:
        raise SellerNotFoundError(profile.user_id)
    return seller
