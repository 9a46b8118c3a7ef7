"""Bearer-token identity verification.

The file service only ever sees the opaque user id these verifiers
return. Swapping identity providers means adding an IdentityVerifier.
"""
import hmac
import logging
from abc import ABC, abstractmethod

from jose import JWTError, jwt

from filevault.config import Settings
from filevault.services.errors import UnauthenticatedError

logger = logging.getLogger(__name__)

INVALID_TOKEN = "Invalid access token"


class IdentityVerifier(ABC):

    @abstractmethod
    async def verify(self, token: str) -> str:
        """Return the user id for ``token`` or raise UnauthenticatedError."""


class JWTIdentityVerifier(IdentityVerifier):
    """Verifies provider-issued JWTs and uses the ``sub`` claim as the user id."""

    def __init__(
        self,
        key: str,
        algorithms: list[str],
        audience: str | None = None,
        issuer: str | None = None,
    ):
        if not key:
            raise ValueError("AUTH_JWT_SECRET must be set for jwt auth mode")
        self.key = key
        self.algorithms = algorithms
        self.audience = audience or None
        self.issuer = issuer or None

    async def verify(self, token: str) -> str:
        try:
            payload = jwt.decode(
                token,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.info("Rejected bearer token: %s", e)
            raise UnauthenticatedError(INVALID_TOKEN)

        subject = payload.get("sub")
        if not subject or not isinstance(subject, str):
            raise UnauthenticatedError(INVALID_TOKEN)
        return subject


class StaticTokenVerifier(IdentityVerifier):
    """Fixed token -> user id table, for local development and tests."""

    def __init__(self, tokens: dict[str, str]):
        self.tokens = dict(tokens)

    async def verify(self, token: str) -> str:
        for known, user_id in self.tokens.items():
            if hmac.compare_digest(known.encode(), token.encode()):
                return user_id
        raise UnauthenticatedError(INVALID_TOKEN)


def build_verifier(settings: Settings) -> IdentityVerifier:
    if settings.AUTH_MODE == "jwt":
        return JWTIdentityVerifier(
            settings.AUTH_JWT_SECRET,
            settings.jwt_algorithms,
            audience=settings.AUTH_JWT_AUDIENCE,
            issuer=settings.AUTH_JWT_ISSUER,
        )
    if settings.AUTH_MODE == "static":
        return StaticTokenVerifier(settings.static_tokens)
    raise ValueError(f"Unknown auth mode: {settings.AUTH_MODE}")
