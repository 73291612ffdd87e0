from collections.abc import AsyncGenerator

import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from payout_service.application.services import PayoutService
from payout_service.application.unit_of_work import UnitOfWork
from payout_service.domain.exceptions import UnauthorizedError
from payout_service.domain.models import Caller
from payout_service.infrastructure.database import Database
from payout_service.infrastructure.security import TokenVerifier


logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


async def get_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Caller:
    if credentials is None:
        raise UnauthorizedError()

    verifier: TokenVerifier = request.app.state.token_verifier
    try:
        caller = verifier.verify(credentials.credentials)
    except jwt.PyJWTError as e:
        logger.info("token_rejected", reason=str(e))
        raise UnauthorizedError("Invalid or expired session") from e

    structlog.contextvars.bind_contextvars(user_id=caller.user_id)
    return caller


async def get_payout_service(request: Request) -> AsyncGenerator[PayoutService, None]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield PayoutService(UnitOfWork(session))
