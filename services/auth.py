"""
Auth Orchestrator: register / login / refresh (rotation) / logout /
forgot + reset password, composed from the hasher, token signer, session
store and CSRF guard.

A client is Anonymous until it holds a refresh session, Authenticated while
that session exists, and each refresh replaces the session (rotation). A
refresh token is therefore single-use: replaying a rotated value fails
exactly like an unknown one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from urllib.parse import urlencode

from models import Account, Role, utcnow
from models.schemas.common import PASSWORD_MIN_LENGTH, mask_email, mask_secret, normalize_email
from services.accounts import AccountRepository
from services.csrf import CsrfGuard
from services.errors import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ReauthenticationRequired,
    ValidationError,
)
from services.mailer import MailSender
from services.session_store import SessionStore
from services.settings import SettingsProvider
from utils.security import (
    ACCESS_TOKEN_TYPE,
    RESET_TOKEN_TYPE,
    CredentialHasher,
    TokenSigner,
    generate_jti,
    sha256_hex,
)

logger = logging.getLogger(__name__)

# Fixed, independent of the access-token lifetime
RESET_TOKEN_TTL = timedelta(minutes=15)


@dataclass(frozen=True)
class AuthPolicy:
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_session_ttl: timedelta = timedelta(days=30)
    password_min_length: int = PASSWORD_MIN_LENGTH
    frontend_url: str = "http://localhost:3000"
    mail_max_attempts: int = 3
    revoke_sessions_on_password_reset: bool = False


@dataclass(frozen=True)
class AuthResult:
    """Access/refresh/CSRF triple handed to the transport layer."""

    account: Account
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime
    csrf_token: str
    expires_in: int
    is_new_account: bool = field(default=False)


class AuthOrchestrator:
    def __init__(
        self,
        accounts: AccountRepository,
        hasher: CredentialHasher,
        signer: TokenSigner,
        sessions: SessionStore,
        csrf: CsrfGuard,
        mailer: MailSender,
        settings: SettingsProvider,
        policy: AuthPolicy | None = None,
    ):
        self.accounts = accounts
        self.hasher = hasher
        self.signer = signer
        self.sessions = sessions
        self.csrf = csrf
        self.mailer = mailer
        self.settings = settings
        self.policy = policy or AuthPolicy()
        self._dummy_hash = None

    # -- helpers ---------------------------------------------------------

    def _check_password(self, password: str) -> None:
        if not isinstance(password, str) or len(password) < self.policy.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.policy.password_min_length} characters long."
            )
        if not self.hasher.is_encodable(password):
            raise ValidationError("Password contains characters that cannot be encoded.")

    def _burn_hash_time(self, password: str) -> None:
        # keeps the unknown-email path about as slow as a real verification
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash(generate_jti())
        self.hasher.verify(password or "", self._dummy_hash)

    def issue_access_token(self, account: Account) -> str:
        claims = {"sub": account.id, "email": account.email, "role": Role(account.role).value}
        return self.signer.issue(claims, self.policy.access_token_ttl, token_type=ACCESS_TOKEN_TYPE)

    def _start_session(self, account: Account, is_new: bool = False) -> AuthResult:
        issued = self.sessions.create(account.id, self.policy.refresh_session_ttl)
        return AuthResult(
            account=account,
            access_token=self.issue_access_token(account),
            refresh_token=issued.token,
            refresh_expires_at=issued.expires_at,
            csrf_token=self.csrf.generate(),
            expires_in=int(self.policy.access_token_ttl.total_seconds()),
            is_new_account=is_new,
        )

    # -- flows -----------------------------------------------------------

    def check_email(self, email: str) -> bool:
        return self.accounts.account_exists(email)

    def register(self, email: str, password: str, name: str | None = None) -> AuthResult:
        email = normalize_email(email)
        if not email or "@" not in email:
            raise ValidationError("A valid email is required.")
        self._check_password(password)
        if self.accounts.account_exists(email):
            raise ConflictError()

        account = self.accounts.create(
            email,
            password_hash=self.hasher.hash(password),
            name=name,
            role=Role.FREE,
            max_slides_per_month=self.settings.monthly_free_quota(),
        )
        logger.info("register", extra={"account_id": account.id, "email": mask_email(email)})
        return self._start_session(account, is_new=True)

    def login(self, email: str, password: str) -> AuthResult:
        account = self.accounts.find_by_email(email)
        if account is None or account.is_oauth_only or not self.hasher.is_encodable(password or ""):
            self._burn_hash_time(password)
            logger.info("login_failed", extra={"email": mask_email(normalize_email(email))})
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, account.password_hash):
            logger.info("login_failed", extra={"email": mask_email(account.email)})
            raise InvalidCredentialsError()

        if self.hasher.needs_rehash(account.password_hash):
            self.accounts.update(account, password_hash=self.hasher.hash(password))
        logger.info("login", extra={"account_id": account.id})
        return self._start_session(account)

    def login_account(self, account: Account, is_new: bool = False) -> AuthResult:
        """Same triple as login(), for identities already proven elsewhere (third-party sign-in)."""
        logger.info("login", extra={"account_id": account.id, "via": "oauth"})
        return self._start_session(account, is_new=is_new)

    def refresh(self, refresh_token: str | None) -> AuthResult:
        record = self.sessions.find_valid(refresh_token)
        if record is None:
            logger.warning("refresh_rejected", extra={"reason": "unknown", "token": mask_secret(refresh_token)})
            raise ReauthenticationRequired()
        account_id = record.account_id

        account = self.accounts.find_by_id(account_id)
        if account is None:
            self.sessions.revoke(refresh_token)
            logger.warning("refresh_rejected", extra={"reason": "account_missing", "account_id": account_id})
            raise ReauthenticationRequired()

        issued = self.sessions.rotate(refresh_token, account_id, self.policy.refresh_session_ttl)
        if issued is None:
            # a concurrent refresh consumed the token between lookup and rotation
            logger.warning("refresh_rejected", extra={"reason": "consumed", "token": mask_secret(refresh_token)})
            raise ReauthenticationRequired()

        return AuthResult(
            account=account,
            access_token=self.issue_access_token(account),
            refresh_token=issued.token,
            refresh_expires_at=issued.expires_at,
            csrf_token=self.csrf.generate(),
            expires_in=int(self.policy.access_token_ttl.total_seconds()),
        )

    def logout(self, refresh_token: str | None) -> None:
        """Best-effort: never raises, whatever happened to the session."""
        if not refresh_token:
            return
        try:
            revoked = self.sessions.revoke(refresh_token)
        except Exception:
            logger.exception("logout_revoke_failed", extra={"token": mask_secret(refresh_token)})
            return
        logger.info("logout", extra={"revoked": revoked})

    def logout_all(self, account_id: str) -> int:
        return self.sessions.revoke_all(account_id)

    def authenticate(self, access_token: str | None) -> Account:
        claims = self.signer.verify(access_token, expected_type=ACCESS_TOKEN_TYPE)
        account = self.accounts.find_by_id(claims.get("sub"))
        if account is None:
            raise AuthenticationError()
        return account

    # -- password reset --------------------------------------------------

    def reset_link(self, token: str) -> str:
        return f"{self.policy.frontend_url}/reset-password?{urlencode({'token': token})}"

    def forgot_password(self, email: str) -> str:
        """
        Issue a reset token and deliver its link. Raises NotFoundError for an
        unknown email; callers must answer with the same generic message either way.
        """
        account = self.accounts.find_by_email(email)
        if account is None:
            raise NotFoundError()

        jti = generate_jti()
        token = self.signer.issue(
            {"sub": account.id, "email": account.email, "jti": jti},
            RESET_TOKEN_TTL,
            token_type=RESET_TOKEN_TYPE,
        )
        self.accounts.update(
            account,
            reset_password_token=sha256_hex(jti),
            reset_password_expires=utcnow() + RESET_TOKEN_TTL,
        )

        link = self.reset_link(token)
        attempts = max(1, self.policy.mail_max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                self.mailer.send_reset_link(account.email, link)
                break
            except ExternalServiceError:
                logger.warning("reset_mail_retry", extra={"attempt": attempt, "account_id": account.id})
        else:
            self.accounts.update(account, reset_password_token=None, reset_password_expires=None)
            raise ExternalServiceError("Failed to send reset password email. Please try again later.")

        logger.info("password_reset_requested", extra={"account_id": account.id})
        return token

    def _check_reset_token(self, token: str | None) -> tuple[Account, str]:
        claims = self.signer.verify(token, expected_type=RESET_TOKEN_TYPE)
        account = self.accounts.find_by_id(claims.get("sub"))
        if account is None or account.email != claims.get("email"):
            raise InvalidTokenError()
        jti = claims.get("jti")
        digest = sha256_hex(jti) if jti else None
        if (
            digest is None
            or account.reset_password_token != digest
            or account.reset_password_expires is None
            or account.reset_password_expires <= utcnow()
        ):
            raise InvalidTokenError()
        return account, digest

    def validate_reset_token(self, token: str | None) -> Account:
        """Check signature, expiry, discriminator and the account's stored digest. Mutates nothing."""
        account, _ = self._check_reset_token(token)
        return account

    def reset_password(self, token: str | None, new_password: str) -> Account:
        account, digest = self._check_reset_token(token)
        self._check_password(new_password)
        # only the reset whose conditional update hits the stored digest wins
        consumed = self.accounts.consume_reset_token(account, digest, self.hasher.hash(new_password))
        if not consumed:
            logger.warning("password_reset_rejected", extra={"account_id": account.id, "reason": "consumed"})
            raise InvalidTokenError()
        if self.policy.revoke_sessions_on_password_reset:
            self.sessions.revoke_all(account.id)
        logger.info("password_reset", extra={"account_id": account.id})
        return account
