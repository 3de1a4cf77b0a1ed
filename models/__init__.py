from models.base_model import Base, BaseModel, utcnow
from models.account import Account, Role, OAUTH_ONLY_PASSWORD
from models.refresh_session import RefreshSession
from models.oauth_state import OAuthState
from models.system_setting import SystemSetting
from models.db_storage import DBStorage

__all__ = [
    "Base",
    "BaseModel",
    "utcnow",
    "Account",
    "Role",
    "OAUTH_ONLY_PASSWORD",
    "RefreshSession",
    "OAuthState",
    "SystemSetting",
    "DBStorage",
]
