import time
from typing import Any

import jwt

from payout_service.domain.models import Caller


class TokenVerifier:
    """Verifies access tokens issued by the identity provider."""

    def __init__(self, secret: str, algorithm: str = "HS256", audience: str | None = None) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    def verify(self, token: str) -> Caller:
        """Decode ``token`` and return the caller it identifies.

        Raises jwt.PyJWTError for expired, tampered or malformed tokens.
        """
        claims: dict[str, Any] = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            audience=self._audience,
            options={"require": ["exp", "sub"], "verify_aud": self._audience is not None},
        )
        return Caller(user_id=str(claims["sub"]), email=claims.get("email"))

    def issue(self, user_id: str, ttl_seconds: int = 3600, **claims: Any) -> str:
        """Mint a token the way the identity provider does. Used by tooling and tests."""
        now = int(time.time())
        payload: dict[str, Any] = {"sub": user_id, "iat": now, "exp": now + ttl_seconds, **claims}
        if self._audience is not None:
            payload["aud"] = self._audience
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)
