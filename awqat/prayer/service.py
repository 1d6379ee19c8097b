"""
Service layer: save and load the reminder configuration as key-value rows in the DB.
"""
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import delete, select

from awqat.core.db import session_scope
from awqat.core.models import Setting
from awqat.prayer.models import MESSAGES_SEPARATOR, PRAYERS_SEPARATOR, ScheduleConfig

SETTING_KEYS = (
    "latitude",
    "longitude",
    "method",
    "madhab",
    "prayers",
    "offset_minutes",
    "reminders_enabled",
    "show_image",
    "custom_title",
    "custom_body",
    "random_messages",
    "timezone",
)


class ConfigStore(Protocol):
    def load(self) -> Optional[ScheduleConfig]: ...

    def save(self, config: ScheduleConfig) -> None: ...


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


def _text_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() == "true"


def to_settings(config: ScheduleConfig) -> Dict[str, Optional[str]]:
    """Flatten a ScheduleConfig into the persisted key-value layout."""
    return {
        "latitude": repr(config.latitude),
        "longitude": repr(config.longitude),
        "method": config.method.value,
        "madhab": config.madhab.value,
        "prayers": PRAYERS_SEPARATOR.join(p.value for p in config.prayers),
        "offset_minutes": str(config.offset_minutes),
        "reminders_enabled": _bool_text(config.enabled),
        "show_image": _bool_text(config.show_image),
        "custom_title": config.custom_title,
        "custom_body": config.custom_body,
        "random_messages": MESSAGES_SEPARATOR.join(config.messages) if config.messages else None,
        "timezone": config.timezone,
    }


def from_settings(values: Dict[str, Optional[str]]) -> ScheduleConfig:
    """Rebuild a ScheduleConfig; absent keys take their defaults. Raises pydantic.ValidationError on bad data."""
    return ScheduleConfig(
        latitude=float(values.get("latitude") or 0.0),
        longitude=float(values.get("longitude") or 0.0),
        method=values.get("method") or "muslim_world_league",
        madhab=values.get("madhab") or "shafi",
        prayers=values.get("prayers") or "",
        offset_minutes=int(values.get("offset_minutes") or 0),
        enabled=_text_bool(values.get("reminders_enabled"), False),
        show_image=_text_bool(values.get("show_image"), True),
        custom_title=values.get("custom_title"),
        custom_body=values.get("custom_body"),
        messages=values.get("random_messages"),
        timezone=values.get("timezone"),
    )


def save_schedule_config(config: ScheduleConfig) -> None:
    """Replace every stored key in one transaction (last write wins)."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    values = to_settings(config)
    with session_scope() as session:
        session.execute(delete(Setting).where(Setting.key.in_(SETTING_KEYS)))
        for key, value in values.items():
            session.add(Setting(key=key, value=value, updated_at=now))


def load_schedule_config() -> Optional[ScheduleConfig]:
    """Return the stored ScheduleConfig, or None if nothing was ever saved."""
    with session_scope() as session:
        rows = session.execute(select(Setting).where(Setting.key.in_(SETTING_KEYS))).scalars().all()
        values = {r.key: r.value for r in rows}
    if not values:
        return None
    return from_settings(values)


class SettingsConfigStore:
    """ConfigStore on the settings table."""

    def load(self) -> Optional[ScheduleConfig]:
        return load_schedule_config()

    def save(self, config: ScheduleConfig) -> None:
        save_schedule_config(config)
