"""Pydantic schemas for the ingredient catalog and its stock views."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ── Create ───────────────────────────────────────────────────

class IngredientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    unit: str = Field(..., min_length=1, max_length=30)
    description: str | None = None
    min_stock: Decimal = Field(Decimal("0"), ge=0)
    max_stock: Decimal | None = Field(None, ge=0)
    reorder_point: Decimal | None = Field(None, ge=0)
    supplier: str | None = Field(None, max_length=200)
    storage_location: str | None = Field(None, max_length=200)


# ── Response ─────────────────────────────────────────────────

class IngredientOut(BaseModel):
    id: str
    name: str
    description: str | None
    unit: str
    current_stock: Decimal
    min_stock: Decimal
    max_stock: Decimal | None
    reorder_point: Decimal | None
    cost_per_unit: Decimal | None
    cost_needs_review: bool
    cost_updated_at: datetime | None
    supplier: str | None
    storage_location: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StockOut(BaseModel):
    ingredient_id: str
    name: str
    unit: str
    current_stock: Decimal


class LowStockOut(BaseModel):
    ingredient_id: str
    name: str
    unit: str
    current_stock: Decimal
    min_stock: Decimal
    shortage: Decimal
    cost_per_unit: Decimal | None
    reorder_value: Decimal | None
    supplier: str | None

    model_config = {"from_attributes": True}


class PriceAnalysisOut(BaseModel):
    ingredient_id: str
    ingredient_name: str
    unit: str
    current_cost: Decimal | None
    purchase_count: int
    min_price: Decimal | None
    max_price: Decimal | None
    avg_price: Decimal | None
    weighted_avg_price: Decimal | None
    total_quantity: Decimal
    total_amount: Decimal
    first_purchase_date: date | None
    last_purchase_date: date | None

    model_config = {"from_attributes": True}
