"""Persistent refresh sessions keyed by an opaque high-entropy token.

Every mutation targets rows by the unique token (or account id) in a single
statement, so deletes can interleave freely with concurrent reads: a reader
that loses the race simply sees "not found".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError

from models import DBStorage, RefreshSession, utcnow
from models.refresh_session import REFRESH_TOKEN_LENGTH
from models.schemas.common import mask_secret
from utils.security import generate_opaque_token

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(days=30)
MAX_CREATE_ATTEMPTS = 3


class SessionCollisionError(RuntimeError):
    """Token generation collided MAX_CREATE_ATTEMPTS times in a row."""


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: datetime
    account_id: str


class SessionStore:
    def __init__(self, storage: DBStorage, default_ttl: timedelta = DEFAULT_SESSION_TTL):
        self.storage = storage
        self.default_ttl = default_ttl

    @property
    def _session(self):
        return self.storage.get_session()

    def _new_record(self, account_id: str, ttl: timedelta) -> RefreshSession:
        return RefreshSession(
            account_id=account_id,
            refresh_token=generate_opaque_token(REFRESH_TOKEN_LENGTH // 2),
            expires_at=utcnow() + ttl,
        )

    def create(self, account_id: str, ttl: timedelta | None = None) -> IssuedSession:
        ttl = ttl if ttl is not None else self.default_ttl
        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            record = self._new_record(account_id, ttl)
            self.storage.new(record)
            try:
                self.storage.save()
            except IntegrityError:
                logger.error("refresh_token_collision", extra={"attempt": attempt})
                continue
            return IssuedSession(record.refresh_token, record.expires_at, account_id)
        raise SessionCollisionError("could not allocate a unique refresh token")

    def find_valid(self, token: str) -> RefreshSession | None:
        """Only unexpired rows count; an expired match is indistinguishable from no match."""
        if not token:
            return None
        return (
            self._session.query(RefreshSession)
            .filter(RefreshSession.refresh_token == token, RefreshSession.expires_at > utcnow())
            .first()
        )

    def rotate(self, token: str, account_id: str, ttl: timedelta | None = None) -> IssuedSession | None:
        """
        Delete the session for `token` and create its replacement in one commit.
        Returns None when the token was already consumed (a competing rotation
        or revocation won); the replacement is then never written.
        """
        ttl = ttl if ttl is not None else self.default_ttl
        session = self._session
        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            deleted = (
                session.query(RefreshSession)
                .filter(RefreshSession.refresh_token == token)
                .delete(synchronize_session=False)
            )
            if deleted != 1:
                self.storage.rollback()
                return None
            record = self._new_record(account_id, ttl)
            self.storage.new(record)
            try:
                self.storage.save()
            except IntegrityError:
                logger.error("refresh_token_collision", extra={"attempt": attempt})
                continue
            logger.info(
                "session_rotated",
                extra={"account_id": account_id, "old": mask_secret(token), "new": mask_secret(record.refresh_token)},
            )
            return IssuedSession(record.refresh_token, record.expires_at, account_id)
        raise SessionCollisionError("could not allocate a unique refresh token")

    def revoke(self, token: str) -> bool:
        if not token:
            return False
        deleted = (
            self._session.query(RefreshSession)
            .filter(RefreshSession.refresh_token == token)
            .delete(synchronize_session=False)
        )
        self.storage.save()
        return deleted > 0

    def revoke_all(self, account_id: str) -> int:
        deleted = (
            self._session.query(RefreshSession)
            .filter(RefreshSession.account_id == account_id)
            .delete(synchronize_session=False)
        )
        self.storage.save()
        logger.info("sessions_revoked_all", extra={"account_id": account_id, "count": deleted})
        return deleted

    def count_active(self, account_id: str) -> int:
        return (
            self._session.query(RefreshSession)
            .filter(RefreshSession.account_id == account_id, RefreshSession.expires_at > utcnow())
            .count()
        )

    def sweep_expired(self) -> int:
        deleted = (
            self._session.query(RefreshSession)
            .filter(RefreshSession.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        self.storage.save()
        return deleted
