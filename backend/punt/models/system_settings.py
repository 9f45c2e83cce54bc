from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from punt.database import Base

SYSTEM_SETTINGS_ID = "system-settings"


class SystemSettings(Base):
    """Singleton row holding instance-wide configuration."""

    __tablename__ = "system_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=SYSTEM_SETTINGS_ID)

    # {"Owner": {...}, "Admin": [...], ...}: per-default-role overrides.
    # Old rows store a bare permission list per role, newer rows a full
    # config object. May also be a JSON-encoded string.
    default_role_permissions: Mapped[dict | str | None] = mapped_column(JSON, default=None)

    # Extra non-default roles seeded into every new project.
    custom_default_roles: Mapped[list | str | None] = mapped_column(JSON, default=None)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
