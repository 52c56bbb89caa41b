"""Pydantic schemas for menus, recipe lines and menu cost."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ── Create / update ──────────────────────────────────────────

class MenuCreate(BaseModel):
    menu_code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    price: Decimal = Field(..., ge=0)


class MenuPriceUpdate(BaseModel):
    price: Decimal = Field(..., ge=0)


class RecipeLineSet(BaseModel):
    """Payload for PUT /api/menus/{menu_id}/recipe/{ingredient_id}."""
    quantity_per_serve: Decimal
    unit: str | None = Field(None, max_length=30)
    is_optional: bool = False
    notes: str | None = None


# ── Response ─────────────────────────────────────────────────

class RecipeLineOut(BaseModel):
    id: str
    ingredient_id: str
    quantity_per_serve: Decimal
    unit: str
    is_optional: bool
    notes: str | None

    model_config = {"from_attributes": True}


class MenuOut(BaseModel):
    id: str
    menu_code: str
    name: str
    description: str | None
    price: Decimal
    cost_price: Decimal | None
    profit: Decimal | None
    profit_margin: Decimal | None
    cost_updated_at: datetime | None
    is_active: bool
    recipe_lines: list[RecipeLineOut] = []

    model_config = {"from_attributes": True}


class MenuCostOut(BaseModel):
    menu_id: str
    menu_code: str
    price: Decimal
    cost: Decimal
    profit: Decimal
    margin: Decimal
    needs_review: bool
