"""Pydantic schemas for alert and port watch operations."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class AlertRead(BaseModel):
    alert_id: str
    port_code: str
    alert_type: str
    severity: str
    vessel_ref: str
    vessel_name: str
    message: str
    acknowledged: bool
    created_at: datetime


class EvaluationRead(BaseModel):
    port_code: str
    status: str
    fired: list[AlertRead]
    suppressed: int


class AcknowledgeResponse(BaseModel):
    port_code: str
    alert_id: str
    acknowledged: bool


class WatchCreateRequest(BaseModel):
    port_code: str = Field(..., min_length=5, max_length=5)
    subscriber: str = Field(..., min_length=1, max_length=255)

    @field_validator("port_code")
    @classmethod
    def port_code_upper(cls, v: str) -> str:
        return v.strip().upper()


class WatchRead(BaseModel):
    watch_id: int
    port_code: str
    subscriber: str
    is_active: bool

    model_config = {"from_attributes": True}
