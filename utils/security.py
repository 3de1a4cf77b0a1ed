"""
security helpers:
- Argon2 password hashing via argon2-cffi (CredentialHasher)
- JWT creation/verification via PyJWT (TokenSigner)
- Opaque high-entropy token generation for refresh sessions, CSRF and OAuth state
"""
from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from services.errors import InvalidTokenError, TokenExpiredError

ACCESS_TOKEN_TYPE = "access"
RESET_TOKEN_TYPE = "reset"


def generate_opaque_token(nbytes: int = 64) -> str:
    """Hex string of `nbytes` random bytes (fixed length 2 * nbytes)."""
    return secrets.token_hex(nbytes)


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID)."""
    return str(uuid.uuid4())


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class CredentialHasher:
    """Salted, adaptive-cost password hashing. The digest carries its own salt and parameters."""

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._ph = PasswordHasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2"""
        return self._ph.hash(password)

    @staticmethod
    def is_encodable(password: str) -> bool:
        """argon2 hashes the UTF-8 bytes; lone surrogates have none."""
        try:
            password.encode("utf-8")
        except UnicodeError:
            return False
        return True

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plaintext password; any malformed or empty digest is just False."""
        if not password_hash or password is None:
            return False
        try:
            return self._ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError, UnicodeError):
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        try:
            return self._ph.check_needs_rehash(password_hash)
        except (InvalidHashError, UnicodeError):
            return False


class TokenSigner:
    """Issues and verifies compact HS256 tokens. The key is fixed for the process lifetime."""

    def __init__(self, secret: str, algorithm: str = "HS256", issuer: str = "lectgen-auth"):
        if not secret:
            raise ValueError("TokenSigner requires a signing secret")
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def issue(self, claims: Dict[str, Any], ttl: timedelta, token_type: str = ACCESS_TOKEN_TYPE) -> str:
        now = self._now()
        payload = dict(claims)
        payload.update(
            {
                "iss": self._issuer,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "type": token_type,
                "jti": payload.get("jti") or generate_jti(),
            }
        )
        if "sub" in payload:
            payload["sub"] = str(payload["sub"])
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> Dict[str, Any]:
        """
        Decode and validate a token. Raises TokenExpiredError when only the
        expiry is wrong, InvalidTokenError for anything else (signature,
        issuer, shape, or a token of another type).
        """
        if not token:
            raise InvalidTokenError()
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidTokenError:
            raise InvalidTokenError()

        if decoded.get("type") != expected_type:
            raise InvalidTokenError()
        return decoded
