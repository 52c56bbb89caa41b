"""Pydantic schemas for production batches and their cost lines."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ── Create / update ──────────────────────────────────────────

class BatchCreate(BaseModel):
    quantity: int = Field(..., ge=0)
    menu_id: str | None = None
    production_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None


class CostLineCreate(BaseModel):
    cost_type: str = Field(..., max_length=20)
    item_name: str = Field(..., min_length=1, max_length=200)
    quantity: Decimal
    unit_cost: Decimal
    unit: str | None = Field(None, max_length=30)
    item_id: str | None = None
    notes: str | None = None


class CostLineUpdate(BaseModel):
    cost_type: str | None = Field(None, max_length=20)
    item_name: str | None = Field(None, max_length=200)
    quantity: Decimal | None = None
    unit_cost: Decimal | None = None
    unit: str | None = Field(None, max_length=30)
    notes: str | None = None


# ── Response ─────────────────────────────────────────────────

class CostLineOut(BaseModel):
    id: str
    cost_type: str
    item_id: str | None
    item_name: str
    quantity: Decimal
    unit: str | None
    unit_cost: Decimal
    total_cost: Decimal
    notes: str | None

    model_config = {"from_attributes": True}


class BatchOut(BaseModel):
    id: str
    batch_number: str
    menu_id: str | None
    quantity: int
    production_date: date
    expiry_date: date | None
    total_cost: Decimal
    cost_per_unit: Decimal | None
    status: str
    notes: str | None
    produced_by: str | None
    created_at: datetime
    cost_lines: list[CostLineOut] = []

    model_config = {"from_attributes": True}


class BatchTotalsOut(BaseModel):
    batch_id: str
    quantity: int
    total_cost: Decimal
    cost_per_unit: Decimal
