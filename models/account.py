from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime, Index
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base, utcnow


class Role(str, Enum):
    """Account roles, ordered by privilege (FREE < VIP < ADMIN)."""
    FREE = "FREE"
    VIP = "VIP"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return _ROLE_ORDER.index(self)

    def at_least(self, other: "Role") -> bool:
        return self.rank >= Role(other).rank


_ROLE_ORDER = [Role.FREE, Role.VIP, Role.ADMIN]

# Marker stored in password_hash for accounts created through third-party sign-in
OAUTH_ONLY_PASSWORD = ""

DEFAULT_MONTHLY_QUOTA = 5


class Account(BaseModel, Base):
    __tablename__ = "accounts"

    # Stored already normalized (see services.accounts.normalize_email)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False, default="")
    avatar_url = Column(String(1024), nullable=True)
    password_hash = Column(String(255), nullable=False, default=OAUTH_ONLY_PASSWORD)
    role = Column(SAEnum(Role, name="account_role", native_enum=False), nullable=False, default=Role.FREE)

    slides_generated = Column(Integer, nullable=False, default=0)
    max_slides_per_month = Column(Integer, nullable=False, default=DEFAULT_MONTHLY_QUOTA)
    subscription_expires_at = Column(DateTime, nullable=True)

    google_id = Column(String(255), nullable=True, unique=True)

    # SHA-256 digest of the outstanding reset token's jti, never the token itself
    reset_password_token = Column(String(64), nullable=True)
    reset_password_expires = Column(DateTime, nullable=True)

    sessions = relationship(
        "RefreshSession",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_accounts_role", "role"),
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    @property
    def is_oauth_only(self) -> bool:
        return not self.password_hash

    def can_generate(self) -> bool:
        """VIP and ADMIN are unlimited; FREE accounts are capped per month."""
        if Role(self.role).at_least(Role.VIP):
            return True
        return (self.slides_generated or 0) < (self.max_slides_per_month or 0)

    def is_subscription_active(self) -> bool:
        if Role(self.role) == Role.FREE:
            return False
        return self.subscription_expires_at is not None and self.subscription_expires_at > utcnow()

    def __repr__(self):
        return f"<Account id={self.id} role={self.role}>"
