"""Short-lived session tokens for the recognition service.

A token is signed per session with the API secret (HS256) and carried to the
service as a bearer credential. Tokens expire 60 seconds after issue, so one
is never reused across sessions.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import jwt

from .config import Credentials
from .exceptions import SigningError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_ISSUER = "recog"
DEFAULT_SUBJECT = "akmitrich"
DEFAULT_AUDIENCE = "tinkoff.cloud.stt"
DEFAULT_TTL_SECONDS = 60


@dataclass(frozen=True)
class Token:
    """A signed session token and the claims it was built from."""

    issuer: str
    subject: str
    audience: str
    expiry: int
    key_id: str
    signature: str
    encoded: str

    def __repr__(self) -> str:
        return f"Token(key_id={self.key_id!r}, audience={self.audience!r}, expiry={self.expiry})"

    def is_expired(self, now: float | None = None) -> bool:
        """Check whether the token is past its expiry."""
        current = time.time() if now is None else now
        return current >= self.expiry

    @property
    def bearer(self) -> str:
        """Value for the authorization metadata header."""
        return f"Bearer {self.encoded}"


class TokenIssuer:
    """Sign session tokens for one API key.

    Example::

        issuer = TokenIssuer(Credentials.from_env())
        token = issuer.issue()
        metadata = [("authorization", token.bearer)]

    """

    def __init__(
        self,
        credentials: Credentials,
        issuer: str = DEFAULT_ISSUER,
        subject: str = DEFAULT_SUBJECT,
        audience: str = DEFAULT_AUDIENCE,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.issuer = issuer
        self.subject = subject
        self.audience = audience
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, credentials: Credentials, settings: dict[str, Any]) -> "TokenIssuer":
        """Build an issuer from the [token] config section."""
        return cls(
            credentials,
            issuer=settings.get("issuer", DEFAULT_ISSUER),
            subject=settings.get("subject", DEFAULT_SUBJECT),
            audience=settings.get("audience", DEFAULT_AUDIENCE),
            ttl_seconds=int(settings.get("ttl_seconds", DEFAULT_TTL_SECONDS)),
        )

    def issue(self) -> Token:
        """Sign a fresh token valid for ttl_seconds from now.

        Raises:
            SigningError: If the secret key cannot produce a signature

        """
        secret = self.credentials.secret_key
        if not isinstance(secret, (bytes, bytearray)) or not secret:
            raise SigningError("Secret key must be non-empty bytes")

        expiry = int(self._clock()) + self.ttl_seconds
        claims = {
            "iss": self.issuer,
            "sub": self.subject,
            "aud": self.audience,
            "exp": expiry,
        }
        try:
            encoded = jwt.encode(
                claims,
                bytes(secret),
                algorithm=ALGORITHM,
                headers={"kid": self.credentials.api_key_id},
            )
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error(f"Failed to sign session token: {e}")
            raise SigningError(f"Failed to sign session token: {e}") from e

        logger.debug(f"Issued session token for key {self.credentials.api_key_id} expiring at {expiry}")
        return Token(
            issuer=self.issuer,
            subject=self.subject,
            audience=self.audience,
            expiry=expiry,
            key_id=self.credentials.api_key_id,
            signature=encoded.rsplit(".", 1)[-1],
            encoded=encoded,
        )

    def verify(self, token: Token | str) -> dict[str, Any]:
        """Decode a token with this issuer's secret and return its claims.

        Raises:
            jwt.InvalidTokenError: If the signature, audience or issuer do not
                match, or the token has expired

        """
        encoded = token.encoded if isinstance(token, Token) else token
        claims = jwt.decode(
            encoded,
            bytes(self.credentials.secret_key),
            algorithms=[ALGORITHM],
            audience=self.audience,
            issuer=self.issuer,
            options={"verify_exp": False, "require": ["exp"]},
        )
        if self._clock() >= claims["exp"]:
            raise jwt.ExpiredSignatureError("Signature has expired")
        return claims


def issue(api_key_id: str, secret_key: bytes) -> Token:
    """Sign a session token with the default claims."""
    return TokenIssuer(Credentials(api_key_id=api_key_id, secret_key=secret_key)).issue()


__all__ = ["Token", "TokenIssuer", "issue"]
