"""Settings service - effective booking rules with defaults"""

import logging

import pydantic
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ...errors import AvailabilityUnknown, ValidationError
from ...shared.audit import record_audit
from .repository import SettingsRepository
from .schemas import DEFAULT_SETTINGS, SETTING_DESCRIPTIONS, BookingSettings, BookingSettingsUpdate

logger = logging.getLogger(__name__)


class SettingsService:
    """Service for booking settings"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SettingsRepository()

    def get_settings(self) -> BookingSettings:
        """Stored settings merged over defaults"""
        try:
            stored = self.repo.get_all(self.db)
        except DBAPIError as e:
            logger.error(f"❌ Failed to load booking settings: {e}")
            raise AvailabilityUnknown("Booking settings could not be loaded, please retry") from e

        merged = {**DEFAULT_SETTINGS, **{k: v for k, v in stored.items() if k in DEFAULT_SETTINGS}}
        try:
            return BookingSettings(**merged)
        except pydantic.ValidationError:
            # A bad stored row must not take booking down; fall back to defaults
            logger.error(f"❌ Stored booking settings are invalid, using defaults: {stored}")
            return BookingSettings(**DEFAULT_SETTINGS)

    def update_settings(self, data: BookingSettingsUpdate) -> BookingSettings:
        """Merge, validate and persist a partial settings update"""
        current = self.get_settings()
        changes = data.model_dump(exclude_none=True)
        if not changes:
            return current

        try:
            updated = BookingSettings(**{**current.model_dump(), **changes})
        except pydantic.ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]) or "settings", "message": err["msg"]}
                for err in e.errors()
            ]
            raise ValidationError(
                "Invalid booking settings", field="settings", details={"errors": errors}
            ) from e

        new_values = updated.model_dump()
        for key in changes:
            self.repo.upsert(self.db, key, new_values[key], SETTING_DESCRIPTIONS.get(key))

        record_audit(
            self.db,
            "settings_update",
            "setting",
            old_data={k: getattr(current, k) for k in changes},
            new_data={k: new_values[k] for k in changes},
        )
        self.db.commit()
        logger.info(f"⚙️ Booking settings updated: {sorted(changes)}")
        return updated
