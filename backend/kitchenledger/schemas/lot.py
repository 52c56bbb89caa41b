"""Pydantic schemas for lots and the expiry report."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class LotRecallRequest(BaseModel):
    reason: str | None = None


class LotOut(BaseModel):
    id: int
    lot_number: str
    ingredient_id: str
    purchase_id: int | None
    quantity: Decimal
    remaining_quantity: Decimal
    unit: str
    unit_cost: Decimal | None
    received_date: date
    expiry_date: date | None
    status: str
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ExpiredLotOut(BaseModel):
    lot_id: int
    lot_number: str
    ingredient_id: str
    ingredient_name: str
    remaining_quantity: Decimal
    unit: str
    unit_cost: Decimal | None
    received_date: date
    expiry_date: date
    days_expired: int
    waste_value: Decimal | None

    model_config = {"from_attributes": True}
