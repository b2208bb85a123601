"""Bearer token issuance and validation for API callers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from jwt import ExpiredSignatureError
from jwt import InvalidTokenError as PyJWTInvalidTokenError
import structlog


logger = structlog.get_logger(__name__)

ISSUER = "tubely-access"


def _utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(tz=timezone.utc)


class AuthError(Exception):
    """Base class for auth failures."""


class InvalidTokenError(AuthError):
    """Raised when token cannot be decoded."""


class TokenExpiredError(AuthError):
    """Raised when token is expired."""


@dataclass(slots=True)
class AuthService:
    """Issue and validate HS256 access tokens whose subject is a user id."""

    signing_key: str
    token_ttl: timedelta = timedelta(hours=1)

    def issue_token(self, user_id: UUID) -> str:
        now = _utcnow()
        claims = {
            "iss": ISSUER,
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self.token_ttl).timestamp()),
        }
        return jwt.encode(claims, self.signing_key, algorithm="HS256")

    def validate_token(self, token: str) -> UUID:
        """Return the user id carried by ``token``."""
        try:
            payload = jwt.decode(
                token,
                self.signing_key,
                algorithms=["HS256"],
                issuer=ISSUER,
                options={"require": ["exp", "sub", "iss"]},
            )
        except ExpiredSignatureError as exc:
            logger.warning("auth.token.expired")
            raise TokenExpiredError("token expired") from exc
        except PyJWTInvalidTokenError as exc:
            logger.warning("auth.token.invalid", error=str(exc))
            raise InvalidTokenError("invalid token") from exc

        try:
            return UUID(str(payload["sub"]))
        except ValueError as exc:
            logger.warning("auth.token.invalid_subject")
            raise InvalidTokenError("invalid token subject") from exc
