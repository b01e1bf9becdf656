"""PortAlert entity: append-only arrival alert history per port."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base


class PortAlert(Base):
    __tablename__ = "port_alerts"
    __table_args__ = (
        Index("ix_port_alerts_port_created", "port_code", "created_utc"),
    )

    # Type and severity are plain strings so unknown values can be skipped on read
    alert_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    port_code: Mapped[str] = mapped_column(String(5), nullable=False)
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    vessel_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    vessel_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False)
    created_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
