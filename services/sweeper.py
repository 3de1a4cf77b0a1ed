"""Out-of-band removal of expired refresh sessions and OAuth states."""
from __future__ import annotations

import logging
import threading

from services.oauth import OAuthBridge
from services.session_store import SessionStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(self, sessions: SessionStore, oauth: OAuthBridge, interval_seconds: float = 3600):
        self.sessions = sessions
        self.oauth = oauth
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> dict:
        sessions = self.sessions.sweep_expired()
        states = self.oauth.sweep_expired()
        logger.info("expiry_sweep", extra={"sessions": sessions, "oauth_states": states})
        return {"sessions": sessions, "oauth_states": states}

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                # next tick retries; a failed sweep only delays cleanup
                logger.exception("expiry_sweep_failed")
            finally:
                self.sessions.storage.close()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="expiry-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
