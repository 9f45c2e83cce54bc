import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from punt.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Global, project-independent bypass for every permission check
    is_system_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    # Disabled accounts fail every authorization check
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # SHA-256 of the service API key (X-API-Key channel). null = no key issued.
    api_key_hash: Mapped[str | None] = mapped_column(String(64), unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    memberships = relationship("ProjectMember", back_populates="user")
