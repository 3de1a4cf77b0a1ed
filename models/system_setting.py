from sqlalchemy import Column, String, Text

from models.base_model import BaseModel, Base


class SystemSetting(BaseModel, Base):
    """Key/value row for dynamic settings. `value` holds JSON text."""
    __tablename__ = "system_settings"

    key = Column(String(64), nullable=False, unique=True, index=True)
    value = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
