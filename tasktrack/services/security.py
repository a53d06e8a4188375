"""
Credential primitives: bcrypt password hashing and token issuance.

Access tokens are HS256 JWTs; refresh tokens are opaque random strings whose
lifecycle lives in the session directory.
"""
import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import secrets
from typing import Optional, Tuple
import uuid

import bcrypt
import jwt

from tasktrack.clock import Clock, utcnow
from tasktrack.config import Settings

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
PASSWORD_MAX_LENGTH = 72
REFRESH_TOKEN_BYTES = 32
ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "jti", "iat", "exp"]


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify password against hash; a malformed hash never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


@dataclass(frozen=True)
class AccessTokenClaims:
    """Identity carried by a validated access token."""
    account_id: int
    username: Optional[str]
    token_id: str
    issued_at: datetime
    expires_at: datetime


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class TokenService:

    def __init__(self, settings: Settings, clock: Clock = utcnow):
        self.secret_key = settings.jwt_secret_key
        self.issuer = settings.jwt_issuer
        self.audience = settings.jwt_audience
        self.access_token_lifetime = timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_token_lifetime = timedelta(days=settings.refresh_token_expire_days)
        self.clock = clock

    def issue_access_token(self, account_id: int, username: str) -> Tuple[str, datetime]:
        """
        Sign a new access token.

        Returns:
            (token, expires_at) where expires_at is read back from the
            token's own exp claim
        """
        now = self.clock()
        payload = {
            "sub": str(account_id),
            "unique_name": username,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + self.access_token_lifetime,
            "iss": self.issuer,
            "aud": self.audience,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=ALGORITHM)

        embedded = jwt.decode(token, options={"verify_signature": False})
        return token, _from_timestamp(embedded["exp"])

    def issue_refresh_token(self) -> str:
        return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")

    def refresh_token_expiry(self) -> datetime:
        return self.clock() + self.refresh_token_lifetime

    def validate_access_token(self, token: Optional[str]) -> Optional[AccessTokenClaims]:
        """Return the token's claims, or None if it is not a currently valid token of ours."""
        if not token:
            return None

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                leeway=0,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.PyJWTError as e:
            logger.debug("Access token rejected: %s", e)
            return None

        try:
            account_id = int(payload["sub"])
        except (TypeError, ValueError):
            logger.debug("Access token rejected: non-numeric subject")
            return None

        return AccessTokenClaims(
            account_id=account_id,
            username=payload.get("unique_name"),
            token_id=str(payload["jti"]),
            issued_at=_from_timestamp(payload["iat"]),
            expires_at=_from_timestamp(payload["exp"]),
        )
