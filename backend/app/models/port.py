"""Port entity: port directory keyed by UN/LOCODE."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import Integer, String, Float
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base


class Port(Base):
    __tablename__ = "ports"

    port_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unlocode: Mapped[str] = mapped_column(String(5), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    # Nullable: ports imported without coordinates cannot be evaluated
    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lon: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
