"""Pydantic schemas for gateway statement lines and upload responses."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import CamelModel


class StatementLineBase(BaseModel):
    """Shared fields for statement lines."""

    transaction_id: str = Field(..., max_length=100)
    gateway: Optional[str] = Field(None, max_length=50)
    gross_amount: Optional[Decimal] = None
    fee_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    currency: Optional[str] = Field(None, max_length=3)
    settled_at: Optional[datetime] = None
    status: Optional[str] = Field(
        None,
        max_length=20,
        description="completed | failed | held | reversed",
    )
    source_file: Optional[str] = Field(None, max_length=255)
    raw_data: Optional[dict[str, Any]] = None


class StatementLineCreate(StatementLineBase):
    """Schema for creating a new statement line."""

    pass


class StatementLineResponse(CamelModel):
    """Schema returned when reading a statement line."""

    id: UUID
    transaction_id: str
    gateway: Optional[str] = None
    gross_amount: Optional[Decimal] = None
    fee_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    settled_at: Optional[datetime] = None
    status: Optional[str] = None
    source_file: Optional[str] = None
    created_at: datetime


class UploadResponse(CamelModel):
    """Schema returned after uploading a statement file."""

    status: str = Field(
        ...,
        description="Upload result status (success, partial, failed)",
    )
    message: str
    lines_processed: int = Field(
        ...,
        description="Total rows parsed from the file",
    )
    lines_saved: int = Field(
        ...,
        description="Rows persisted to the database",
    )
    lines_skipped: int = Field(
        ...,
        description="Rows skipped (duplicates, failed status, etc.)",
    )
    errors: list[str] = Field(default_factory=list)
