"""PortWatch entity: subscriber interest in a port's alert stream."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, Boolean, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base


class PortWatch(Base):
    __tablename__ = "port_watches"
    __table_args__ = (
        UniqueConstraint("port_code", "subscriber", name="uq_port_watch_subscriber"),
    )

    watch_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    port_code: Mapped[str] = mapped_column(String(5), nullable=False, index=True)
    subscriber: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
