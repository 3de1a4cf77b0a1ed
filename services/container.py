"""Wiring container for the auth components."""
from dataclasses import dataclass

from models import DBStorage
from services.accounts import AccountRepository
from services.auth import AuthOrchestrator
from services.csrf import CsrfGuard
from services.oauth import GoogleOAuthProvider, OAuthBridge
from services.session_store import SessionStore
from services.settings import SettingsProvider
from services.sweeper import ExpirySweeper


@dataclass
class AuthServices:
    """Every component the transport layer uses, wired once in create_app."""

    storage: DBStorage
    accounts: AccountRepository
    sessions: SessionStore
    csrf: CsrfGuard
    settings: SettingsProvider
    oauth: OAuthBridge
    oauth_provider: GoogleOAuthProvider
    orchestrator: AuthOrchestrator
    sweeper: ExpirySweeper
