"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class ZoneEnum(str, enum.Enum):
    ANCHORAGE = "anchorage"
    APPROACH = "approach"
    TRANSIT = "transit"


class CongestionLevelEnum(str, enum.Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class ConfidenceTierEnum(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertTypeEnum(str, enum.Enum):
    ETA_IMMINENT = "ETA_IMMINENT"
    DANGEROUS_GOODS_INBOUND = "DANGEROUS_GOODS_INBOUND"
    DOCUMENT_OVERDUE = "DOCUMENT_OVERDUE"
    HIGH_CONGESTION = "HIGH_CONGESTION"


class AlertSeverityEnum(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class DocumentStatusEnum(str, enum.Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
