"""Account persistence: the lookups and mutations the auth core needs from the user store."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from models import Account, DBStorage, Role, OAUTH_ONLY_PASSWORD
from models.schemas.common import normalize_email
from services.errors import ConflictError

logger = logging.getLogger(__name__)

# Attributes callers may change through update(); identity/credential fields have dedicated paths
_UPDATABLE = {
    "name",
    "avatar_url",
    "password_hash",
    "role",
    "max_slides_per_month",
    "subscription_expires_at",
    "google_id",
    "reset_password_token",
    "reset_password_expires",
}


class AccountRepository:
    def __init__(self, storage: DBStorage):
        self.storage = storage

    @property
    def _session(self):
        return self.storage.get_session()

    def account_exists(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def find_by_email(self, email: str) -> Account | None:
        email = normalize_email(email)
        if not email:
            return None
        return self._session.query(Account).filter(Account.email == email).first()

    def find_by_id(self, account_id: str) -> Account | None:
        if not account_id:
            return None
        return self.storage.get(Account, account_id)

    def find_by_google_id(self, google_id: str) -> Account | None:
        if not google_id:
            return None
        return self._session.query(Account).filter(Account.google_id == google_id).first()

    def create(
        self,
        email: str,
        *,
        password_hash: str = OAUTH_ONLY_PASSWORD,
        name: str | None = None,
        avatar_url: str | None = None,
        role: Role = Role.FREE,
        max_slides_per_month: int,
        google_id: str | None = None,
    ) -> Account:
        email = normalize_email(email)
        account = Account(
            email=email,
            name=name or email.split("@")[0],
            avatar_url=avatar_url,
            password_hash=password_hash,
            role=role,
            slides_generated=0,
            max_slides_per_month=max_slides_per_month,
            google_id=google_id,
        )
        self.storage.new(account)
        try:
            self.storage.save()
        except IntegrityError:
            # lost a race with a concurrent registration of the same email
            raise ConflictError()
        return account

    def update(self, account: Account, **changes) -> Account:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported account fields: {sorted(unknown)}")
        for key, value in changes.items():
            setattr(account, key, value)
        self.storage.new(account)
        self.storage.save()
        return account

    def consume_reset_token(self, account: Account, digest: str, password_hash: str) -> bool:
        """
        Set the new password and clear the pending reset digest in one
        conditional UPDATE. False when the digest was already cleared or replaced.
        """
        updated = (
            self._session.query(Account)
            .filter(Account.id == account.id, Account.reset_password_token == digest)
            .update(
                {
                    Account.password_hash: password_hash,
                    Account.reset_password_token: None,
                    Account.reset_password_expires: None,
                },
                synchronize_session=False,
            )
        )
        self.storage.save()
        if updated != 1:
            return False
        self._session.refresh(account)
        return True

    def has_quota(self, account: Account) -> bool:
        return account.can_generate()

    def increment_usage(self, account_id: str) -> Account | None:
        account = self.find_by_id(account_id)
        if account is None:
            return None
        account.slides_generated = (account.slides_generated or 0) + 1
        self.storage.new(account)
        self.storage.save()
        return account
