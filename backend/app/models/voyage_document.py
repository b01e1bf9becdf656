"""VoyageDocument entity: pre-arrival document checklist items per voyage."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, Boolean, Float, DateTime, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, DocumentStatusEnum


class VoyageDocument(Base):
    __tablename__ = "voyage_documents"
    __table_args__ = (
        UniqueConstraint("voyage_id", "doc_code", name="uq_voyage_document"),
        Index("ix_voyage_documents_imo_port", "imo", "port_code"),
    )

    document_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    voyage_id: Mapped[str] = mapped_column(String(64), nullable=False)
    imo: Mapped[str] = mapped_column(String(20), nullable=False)
    port_code: Mapped[str] = mapped_column(String(5), nullable=False)
    doc_code: Mapped[str] = mapped_column(String(50), nullable=False)
    mandatory: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(20), default=DocumentStatusEnum.PENDING.value)
    due_hours_before_eta: Mapped[float] = mapped_column(Float, default=24.0)
    eta_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
