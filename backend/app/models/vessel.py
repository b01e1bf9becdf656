"""Vessel entity: identity for position reports."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class Vessel(Base):
    __tablename__ = "vessels"

    vessel_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    imo: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    mmsi: Mapped[Optional[str]] = mapped_column(String(9), nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    positions: Mapped[list["VesselPosition"]] = relationship(
        "VesselPosition", back_populates="vessel", cascade="all, delete-orphan"
    )
