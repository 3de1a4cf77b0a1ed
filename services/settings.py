"""Read-only view over dynamic settings stored in `system_settings`.

Polled per request. Any storage or decoding failure falls back to the
defaults (maintenance off), so a broken settings table never locks users out.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from models import DBStorage, SystemSetting

logger = logging.getLogger(__name__)

MAINTENANCE_MODE = "maintenanceMode"
MONTHLY_FREE_QUOTA = "monthlyFreeQuota"


class SettingsProvider:
    def __init__(self, storage: DBStorage, defaults: dict[str, Any] | None = None):
        self.storage = storage
        self.defaults = {MAINTENANCE_MODE: False, MONTHLY_FREE_QUOTA: 5}
        self.defaults.update(defaults or {})

    def get(self, key: str) -> Any:
        default = self.defaults.get(key)
        try:
            row = self.storage.get_session().query(SystemSetting).filter(SystemSetting.key == key).first()
        except SQLAlchemyError:
            logger.warning("settings_lookup_failed", extra={"key": key}, exc_info=True)
            self.storage.rollback()
            return default
        if row is None:
            return default
        try:
            return json.loads(row.value)
        except (TypeError, ValueError):
            return row.value

    def maintenance_mode(self) -> bool:
        value = self.get(MAINTENANCE_MODE)
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes")
        return bool(value)

    def monthly_free_quota(self) -> int:
        value = self.get(MONTHLY_FREE_QUOTA)
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return int(self.defaults[MONTHLY_FREE_QUOTA])
