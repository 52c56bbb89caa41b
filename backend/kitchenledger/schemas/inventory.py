"""Pydantic schemas for stock events and the ledger."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from kitchenledger.schemas.cogs import CogsOut


# ── Business events ──────────────────────────────────────────

class PurchaseRequest(BaseModel):
    """Payload for POST /api/inventory/purchases."""
    ingredient_id: str
    quantity: Decimal
    unit: str | None = Field(None, max_length=30)
    unit_price: Decimal | None = None
    vendor: str = Field(..., min_length=1, max_length=200)
    vendor_invoice: str | None = Field(None, max_length=100)
    purchase_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None


class SaleRequest(BaseModel):
    """Payload for POST /api/inventory/sales."""
    menu_id: str
    quantity: int
    unit_price: Decimal | None = None
    order_date: date | None = None
    packaging_cost: Decimal = Field(Decimal("0"), ge=0)
    labor_cost: Decimal = Field(Decimal("0"), ge=0)
    overhead_cost: Decimal = Field(Decimal("0"), ge=0)
    notes: str | None = None


class AdjustmentRequest(BaseModel):
    """Payload for POST /api/inventory/adjustments."""
    ingredient_id: str
    new_stock: Decimal
    reason: str = Field(..., min_length=1)


class WasteRequest(BaseModel):
    """Payload for POST /api/inventory/waste."""
    ingredient_id: str
    quantity: Decimal
    reason: str = Field(..., min_length=1)
    waste_type: str = Field("other", max_length=30)
    waste_date: date | None = None
    lot_id: int | None = None


class CorrectionRequest(BaseModel):
    reason: str = Field(..., min_length=1)


# ── Response ─────────────────────────────────────────────────

class LedgerEntryOut(BaseModel):
    id: int
    ingredient_id: str
    transaction_type: str
    quantity_change: Decimal
    unit: str
    reference_type: str | None
    reference_id: str | None
    reason: str | None
    corrects_entry_id: int | None
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SaleOut(BaseModel):
    sale_id: int
    menu_id: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    order_date: date
    entries: list[LedgerEntryOut]
    cogs: CogsOut


class RepairOut(BaseModel):
    ingredient_id: str
    ingredient_name: str
    previous_stock: Decimal
    recomputed_stock: Decimal
    drift: Decimal
    entry_count: int

    model_config = {"from_attributes": True}


class CostUpdateOut(BaseModel):
    ingredient_id: str
    ingredient_name: str
    old_cost: Decimal | None
    new_cost: Decimal | None
    stale: bool
    changed: bool
    purchase_count: int | None = None

    model_config = {"from_attributes": True}
