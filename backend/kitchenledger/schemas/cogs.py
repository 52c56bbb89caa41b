"""Pydantic schemas for COGS views."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class CogsOut(BaseModel):
    id: str
    sale_id: int
    menu_id: str
    sale_date: date
    quantity: int
    ingredient_cost: Decimal | None
    packaging_cost: Decimal
    labor_cost: Decimal
    overhead_cost: Decimal
    total_cogs: Decimal | None

    model_config = {"from_attributes": True}


class MenuCogsOut(BaseModel):
    menu_id: str
    menu_code: str
    menu_name: str
    sales_count: int
    units_sold: int
    ingredient_cost: Decimal
    packaging_cost: Decimal
    labor_cost: Decimal
    overhead_cost: Decimal
    total_cogs: Decimal
    unpriced_sales: int
    avg_cogs_per_unit: Decimal | None

    model_config = {"from_attributes": True}


class CogsPeriodOut(BaseModel):
    start: date
    end: date
    sales_count: int
    units_sold: int
    ingredient_cost: Decimal
    packaging_cost: Decimal
    labor_cost: Decimal
    overhead_cost: Decimal
    total_cogs: Decimal
    unpriced_sales: int
    menus: list[MenuCogsOut]

    model_config = {"from_attributes": True}
