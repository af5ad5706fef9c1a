"""Settings repository - key/value rows in booking_settings"""

from typing import Any

from sqlalchemy.orm import Session

from ...models import BookingSetting


class SettingsRepository:
    """Repository for booking settings database operations"""

    @staticmethod
    def get_all(db: Session) -> dict[str, Any]:
        """Get all stored settings as a dict"""
        return {row.key: row.value for row in db.query(BookingSetting).all()}

    @staticmethod
    def upsert(db: Session, key: str, value: Any, description: str = None) -> BookingSetting:
        """Insert or update one setting (caller commits)"""
        row = db.query(BookingSetting).filter(BookingSetting.key == key).first()
        if row:
            row.value = value
        else:
            row = BookingSetting(key=key, value=value, description=description)
            db.add(row)
        return row
