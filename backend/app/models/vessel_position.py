"""VesselPosition entity: individual AIS position reports."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class VesselPosition(Base):
    __tablename__ = "vessel_positions"
    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name="ck_position_lat_bounds"),
        CheckConstraint("lon >= -180 AND lon <= 180", name="ck_position_lon_bounds"),
        Index("ix_position_vessel_ts", "vessel_id", "timestamp_utc"),
    )

    position_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.vessel_id"), nullable=False, index=True)
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    sog: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    heading: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    nav_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="positions")
