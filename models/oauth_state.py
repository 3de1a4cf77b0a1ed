from sqlalchemy import Column, String, DateTime

from models.base_model import BaseModel, Base


class OAuthState(BaseModel, Base):
    """Pending third-party sign-in. Only the SHA-256 digest of the state value is stored."""
    __tablename__ = "oauth_states"

    state_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<OAuthState id={self.id}>"
