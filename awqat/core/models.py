"""
Core DB models: the key-value settings table that backs the reminder configuration.
"""
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy import Column, DateTime, String, Text, select

from awqat.core.db import Base, session_scope


def _utc_now() -> datetime:
    """UTC now as naive datetime for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Setting(Base):
    """One persisted key. Values are text; None is stored as NULL."""
    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, onupdate=_utc_now, nullable=False)


def get_all_settings() -> Dict[str, str]:
    """Return every stored key as a dict (for status output)."""
    with session_scope() as session:
        rows = session.execute(select(Setting)).scalars().all()
        return {r.key: r.value for r in rows}
