"""
Runtime settings stored in app_settings. Values are validated against the
closed schema in schemas.admin before they are written.
"""
from typing import Any

from sqlalchemy.orm import Session

from outreach.app.core.logging_config import get_logger
from outreach.app.models.admin import AppSetting
from outreach.app.schemas.admin import SETTING_CATEGORIES, SETTING_DESCRIPTIONS, app_setting_adapter

logger = get_logger("services.app_settings")


def get_setting(db: Session, key: str, default: Any = None) -> Any:
    """Return the stored value for `key`, or `default` when unset or no longer valid."""
    row = db.query(AppSetting).filter(AppSetting.key == key).first()
    if row is None or row.value is None:
        return default
    try:
        return app_setting_adapter.validate_python({"key": key, "value": row.value}).value
    except ValueError:
        logger.warning("Ignoring invalid stored setting key=%s", key)
        return default


def upsert_setting(db: Session, data: dict, updated_by: int | None) -> AppSetting:
    """Validate {key, value} and insert or update it. Raises pydantic.ValidationError."""
    setting = app_setting_adapter.validate_python(data)
    row = db.query(AppSetting).filter(AppSetting.key == setting.key).first()
    if row is None:
        row = AppSetting(
            key=setting.key,
            category=SETTING_CATEGORIES[setting.key],
            description=SETTING_DESCRIPTIONS.get(setting.key),
        )
        db.add(row)
    row.value = setting.value
    row.updated_by = updated_by
    db.commit()
    db.refresh(row)
    return row


def list_settings_grouped(db: Session) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {}
    for row in db.query(AppSetting).order_by(AppSetting.category, AppSetting.key).all():
        grouped.setdefault(row.category, []).append({
            "key": row.key,
            "value": row.value,
            "description": row.description,
            "updated_at": row.updated_at.isoformat() if row.updated_at else None,
        })
    return grouped
