"""
Third-party sign-in:
- OAuthBridge: single-use anti-forgery state values and mapping of an
  external identity onto a local account.
- GoogleOAuthProvider: authorization redirect URL and the code -> identity
  exchange against Google's endpoints (requests, bounded timeouts).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from urllib.parse import urlencode

import requests

from models import Account, DBStorage, OAuthState, Role, OAUTH_ONLY_PASSWORD, utcnow
from models.schemas.common import mask_email, mask_secret, normalize_email
from services.accounts import AccountRepository
from services.errors import AuthenticationError, ExternalServiceError
from services.settings import SettingsProvider
from utils.security import generate_opaque_token, sha256_hex

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL = timedelta(minutes=10)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


@dataclass(frozen=True)
class ExternalIdentity:
    provider_id: str
    email: str
    email_verified: bool
    name: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True)
class MappedAccount:
    account: Account
    is_new: bool


class OAuthBridge:
    def __init__(
        self,
        storage: DBStorage,
        accounts: AccountRepository,
        settings: SettingsProvider,
        state_ttl: timedelta = DEFAULT_STATE_TTL,
    ):
        self.storage = storage
        self.accounts = accounts
        self.settings = settings
        self.state_ttl = state_ttl

    @property
    def _session(self):
        return self.storage.get_session()

    def begin_state(self) -> str:
        state = generate_opaque_token(32)
        self.storage.new(OAuthState(state_hash=sha256_hex(state), expires_at=utcnow() + self.state_ttl))
        self.storage.save()
        return state

    def validate_state(self, state: str | None) -> bool:
        """
        True at most once per state. The row is deleted whether it turns out
        valid or expired; only the caller whose delete hits the row may succeed.
        """
        if not state:
            return False
        state_hash = sha256_hex(state)
        record = self._session.query(OAuthState).filter(OAuthState.state_hash == state_hash).first()
        if record is None:
            logger.warning("oauth_state_rejected", extra={"reason": "unknown", "state": mask_secret(state)})
            return False
        expires_at = record.expires_at
        deleted = (
            self._session.query(OAuthState)
            .filter(OAuthState.state_hash == state_hash)
            .delete(synchronize_session=False)
        )
        self.storage.save()
        if deleted != 1:
            logger.warning("oauth_state_rejected", extra={"reason": "replayed", "state": mask_secret(state)})
            return False
        if expires_at <= utcnow():
            logger.warning("oauth_state_rejected", extra={"reason": "expired", "state": mask_secret(state)})
            return False
        return True

    def sweep_expired(self) -> int:
        deleted = (
            self._session.query(OAuthState)
            .filter(OAuthState.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        self.storage.save()
        return deleted

    def map_identity(self, identity: ExternalIdentity) -> MappedAccount:
        """
        Resolve a provider identity to a local account:
        - already linked by provider id -> that account
        - same email, not linked yet -> link it
        - same email, linked to a different provider id -> rejected
        - nothing -> new OAuth-only account (empty password hash)
        """
        if not identity.provider_id or not identity.email:
            raise AuthenticationError("Provider did not return an identity")
        if not identity.email_verified:
            raise AuthenticationError("Provider email is not verified")

        linked = self.accounts.find_by_google_id(identity.provider_id)
        if linked is not None:
            return MappedAccount(linked, False)

        email = normalize_email(identity.email)
        existing = self.accounts.find_by_email(email)
        if existing is not None:
            if existing.google_id and existing.google_id != identity.provider_id:
                logger.warning("oauth_link_conflict", extra={"email": mask_email(email)})
                raise AuthenticationError()
            if not existing.google_id:
                self.accounts.update(existing, google_id=identity.provider_id)
                logger.info("oauth_account_linked", extra={"account_id": existing.id})
            return MappedAccount(existing, False)

        account = self.accounts.create(
            email,
            password_hash=OAUTH_ONLY_PASSWORD,
            name=identity.name,
            avatar_url=identity.avatar_url,
            role=Role.FREE,
            max_slides_per_month=self.settings.monthly_free_quota(),
            google_id=identity.provider_id,
        )
        logger.info("oauth_account_created", extra={"account_id": account.id})
        return MappedAccount(account, True)


class GoogleOAuthProvider:
    TIMEOUT = (5, 30)  # connect, read

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        max_attempts: int = 3,
        http: requests.Session | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.max_attempts = max(1, max_attempts)
        self.http = http or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": "openid email profile",
                "state": state,
                "prompt": "select_account",
            }
        )
        return f"{GOOGLE_AUTH_URL}?{query}"

    def _request(self, method: str, url: str, **kwargs) -> dict:
        last_exc = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = self.http.request(method, url, timeout=self.TIMEOUT, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_exc = exc
                logger.warning("oauth_provider_retry", extra={"attempt": attempt, "url": url})
                continue
            except requests.RequestException as exc:
                logger.warning("oauth_provider_error", extra={"error": type(exc).__name__, "url": url})
                raise ExternalServiceError("Sign-in provider request failed") from exc
            try:
                data = resp.json()
            except ValueError as exc:
                raise ExternalServiceError("Sign-in provider returned an unreadable response") from exc
            if resp.status_code >= 400 or "error" in data:
                logger.warning("oauth_provider_error", extra={"status_code": resp.status_code, "url": url})
                raise ExternalServiceError("Sign-in provider rejected the request")
            return data
        raise ExternalServiceError("Sign-in provider is unreachable") from last_exc

    def exchange_code(self, code: str) -> ExternalIdentity:
        token_data = self._request(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        access_token = token_data.get("access_token")
        if not access_token:
            raise ExternalServiceError("Token exchange did not return access_token")

        userinfo = self._request(
            "GET",
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return ExternalIdentity(
            provider_id=str(userinfo.get("sub") or ""),
            email=userinfo.get("email") or "",
            email_verified=bool(userinfo.get("email_verified")),
            name=userinfo.get("name"),
            avatar_url=userinfo.get("picture"),
        )
