"""Double-submit CSRF tokens. No server-side state: the cookie and the header must simply agree."""
from __future__ import annotations

import secrets


class CsrfGuard:
    def __init__(self, nbytes: int = 32):
        self.nbytes = nbytes

    def generate(self) -> str:
        return secrets.token_hex(self.nbytes)

    def verify(self, cookie_value: str | None, header_value: str | None) -> bool:
        if not cookie_value or not header_value:
            return False
        return secrets.compare_digest(cookie_value.encode("utf-8"), header_value.encode("utf-8"))
