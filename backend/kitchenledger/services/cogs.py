"""Batch and COGS aggregation.

Production batches:
    total_cost    = Σ cost_line.total_cost
    cost_per_unit = total_cost / quantity   (NULL while quantity is 0)

Every cost line write (add / update / remove) recomputes the batch in the
same transaction, so the stored totals always match the lines.

Per-sale COGS:
    total_cogs = ingredient_cost + packaging_cost + labor_cost + overhead_cost

The aggregator only sums what the callers supply.  ingredient_cost comes
from the ingredients the sale consumed; the other three are optional inputs.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kitchenledger.middleware.exceptions import (
    BusinessLogicError,
    InvalidQuantity,
    ResourceNotFoundError,
    Undefined,
)
from kitchenledger.models.batch import COST_TYPES, Batch, BatchCostLine
from kitchenledger.models.cogs import CogsRecord
from kitchenledger.models.events import Sale
from kitchenledger.models.menu import Menu
from kitchenledger.utils.activity import log_activity
from kitchenledger.utils.numbering import generate_code

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")
UNIT_COST_QUANT = Decimal("0.0001")
ZERO = Decimal("0")

UPDATABLE_LINE_FIELDS = ("cost_type", "item_name", "quantity", "unit", "unit_cost", "notes")
CLEARABLE_LINE_FIELDS = ("unit", "notes")


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


# ── Production batches ──────────────────────────────────────


@dataclass
class BatchTotals:
    batch_id: str
    quantity: int
    total_cost: Decimal
    cost_per_unit: Decimal | None

    def unit_cost(self) -> Decimal:
        """Cost per produced unit; undefined for an empty batch."""
        if self.cost_per_unit is None:
            raise Undefined(
                f"Batch {self.batch_id} has quantity 0, cost per unit is undefined"
            )
        return self.cost_per_unit


async def get_batch(db: AsyncSession, batch_id: str) -> Batch:
    batch = (
        await db.execute(
            select(Batch)
            .where(Batch.id == batch_id)
            .options(selectinload(Batch.cost_lines))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if batch is None:
        raise ResourceNotFoundError("Batch", batch_id)
    return batch


async def recompute_batch_total(db: AsyncSession, batch: Batch) -> BatchTotals:
    line_totals = (
        await db.execute(
            select(BatchCostLine.total_cost).where(BatchCostLine.batch_id == batch.id)
        )
    ).scalars().all()

    batch.total_cost = money(sum(line_totals, ZERO))
    if batch.quantity > 0:
        batch.cost_per_unit = (batch.total_cost / batch.quantity).quantize(
            UNIT_COST_QUANT, rounding=ROUND_HALF_UP
        )
    else:
        batch.cost_per_unit = None

    return BatchTotals(batch.id, batch.quantity, batch.total_cost, batch.cost_per_unit)


async def create_batch(
    db: AsyncSession,
    *,
    quantity: int,
    actor: str,
    menu_id: str | None = None,
    production_date: date | None = None,
    expiry_date: date | None = None,
    notes: str | None = None,
) -> Batch:
    if quantity is None or quantity < 0:
        raise InvalidQuantity("Batch quantity must not be negative")
    if menu_id is not None:
        menu = (await db.execute(select(Menu).where(Menu.id == menu_id))).scalar_one_or_none()
        if menu is None:
            raise ResourceNotFoundError("Menu", menu_id)

    production_date = production_date or date.today()
    batch = Batch(
        batch_number=await generate_code(db, "batch", production_date),
        menu_id=menu_id,
        quantity=quantity,
        production_date=production_date,
        expiry_date=expiry_date,
        total_cost=ZERO,
        cost_per_unit=None,
        status="active",
        notes=notes,
        produced_by=actor,
    )
    db.add(batch)
    await db.flush()
    await recompute_batch_total(db, batch)

    await log_activity(
        db, actor,
        action="batch_created",
        entity_type="batch",
        entity_id=batch.id,
        entity_code=batch.batch_number,
        summary=f"{quantity} units",
    )
    return batch


def _check_line(cost_type: str, quantity: Decimal, unit_cost: Decimal) -> None:
    if cost_type not in COST_TYPES:
        raise BusinessLogicError(
            f"Unknown cost type: {cost_type}", details={"allowed": list(COST_TYPES)}
        )
    if quantity is None or quantity <= 0:
        raise InvalidQuantity("Cost line quantity must be positive")
    if unit_cost is None or unit_cost < 0:
        raise InvalidQuantity("Cost line unit cost must not be negative")


async def add_cost_line(
    db: AsyncSession,
    batch_id: str,
    *,
    cost_type: str,
    item_name: str,
    quantity: Decimal,
    unit_cost: Decimal,
    unit: str | None = None,
    item_id: str | None = None,
    notes: str | None = None,
) -> BatchCostLine:
    _check_line(cost_type, quantity, unit_cost)
    batch = await get_batch(db, batch_id)

    line = BatchCostLine(
        cost_type=cost_type,
        item_id=item_id,
        item_name=item_name,
        quantity=quantity,
        unit=unit,
        unit_cost=unit_cost,
        total_cost=money(quantity * unit_cost),
        notes=notes,
    )
    batch.cost_lines.append(line)
    await db.flush()
    await recompute_batch_total(db, batch)
    return line


async def _get_cost_line(db: AsyncSession, batch_id: str, line_id: str) -> BatchCostLine:
    line = (
        await db.execute(
            select(BatchCostLine).where(
                BatchCostLine.id == line_id,
                BatchCostLine.batch_id == batch_id,
            )
        )
    ).scalar_one_or_none()
    if line is None:
        raise ResourceNotFoundError("Cost line", line_id)
    return line


async def update_cost_line(
    db: AsyncSession,
    batch_id: str,
    line_id: str,
    **changes,
) -> BatchCostLine:
    """Apply field changes to a cost line and recompute its batch.

    Only `unit` and `notes` may be set to None.
    """
    unknown = set(changes) - set(UPDATABLE_LINE_FIELDS)
    if unknown:
        raise BusinessLogicError(f"Cost line fields cannot be changed: {sorted(unknown)}")

    required = sorted(
        key for key, value in changes.items()
        if value is None and key not in CLEARABLE_LINE_FIELDS
    )
    if required:
        raise BusinessLogicError(f"Cost line fields cannot be cleared: {required}")

    line = await _get_cost_line(db, batch_id, line_id)
    _check_line(
        changes.get("cost_type", line.cost_type),
        changes.get("quantity", line.quantity),
        changes.get("unit_cost", line.unit_cost),
    )
    for key, value in changes.items():
        setattr(line, key, value)
    line.total_cost = money(line.quantity * line.unit_cost)
    await db.flush()

    batch = await get_batch(db, batch_id)
    await recompute_batch_total(db, batch)
    return line


async def remove_cost_line(db: AsyncSession, batch_id: str, line_id: str) -> Batch:
    line = await _get_cost_line(db, batch_id, line_id)
    await db.delete(line)
    await db.flush()

    batch = await get_batch(db, batch_id)
    await recompute_batch_total(db, batch)
    return batch


# ── Per-sale COGS ───────────────────────────────────────────


async def record_sale_cogs(
    db: AsyncSession,
    sale: Sale,
    *,
    ingredient_cost: Decimal | None,
    packaging_cost: Decimal = ZERO,
    labor_cost: Decimal = ZERO,
    overhead_cost: Decimal = ZERO,
) -> CogsRecord:
    """Write the COGS row for a sale from the supplied components."""
    for label, value in (
        ("packaging_cost", packaging_cost),
        ("labor_cost", labor_cost),
        ("overhead_cost", overhead_cost),
    ):
        if value < 0:
            raise InvalidQuantity(f"{label} must not be negative")

    others = money(packaging_cost) + money(labor_cost) + money(overhead_cost)
    record = CogsRecord(
        sale_id=sale.id,
        menu_id=sale.menu_id,
        sale_date=sale.order_date,
        quantity=sale.quantity,
        ingredient_cost=money(ingredient_cost) if ingredient_cost is not None else None,
        packaging_cost=money(packaging_cost),
        labor_cost=money(labor_cost),
        overhead_cost=money(overhead_cost),
    )
    record.total_cogs = (
        record.ingredient_cost + others if record.ingredient_cost is not None else None
    )
    db.add(record)
    await db.flush()

    if record.total_cogs is None:
        logger.warning("Sale #%s posted without a complete ingredient cost", sale.id)
    return record


async def cogs_for_sale(db: AsyncSession, sale_id: int) -> CogsRecord:
    record = (
        await db.execute(select(CogsRecord).where(CogsRecord.sale_id == sale_id))
    ).scalar_one_or_none()
    if record is None:
        raise ResourceNotFoundError("COGS for sale", str(sale_id))
    return record


@dataclass
class MenuCogs:
    menu_id: str
    menu_code: str
    menu_name: str
    sales_count: int = 0
    units_sold: int = 0
    ingredient_cost: Decimal = ZERO
    packaging_cost: Decimal = ZERO
    labor_cost: Decimal = ZERO
    overhead_cost: Decimal = ZERO
    total_cogs: Decimal = ZERO
    unpriced_sales: int = 0

    @property
    def avg_cogs_per_unit(self) -> Decimal | None:
        if not self.units_sold or self.unpriced_sales:
            return None
        return (self.total_cogs / self.units_sold).quantize(UNIT_COST_QUANT, rounding=ROUND_HALF_UP)


@dataclass
class CogsPeriod:
    start: date
    end: date
    sales_count: int = 0
    units_sold: int = 0
    ingredient_cost: Decimal = ZERO
    packaging_cost: Decimal = ZERO
    labor_cost: Decimal = ZERO
    overhead_cost: Decimal = ZERO
    total_cogs: Decimal = ZERO
    unpriced_sales: int = 0
    menus: list[MenuCogs] = field(default_factory=list)


async def cogs_for_period(db: AsyncSession, start: date, end: date) -> CogsPeriod:
    """Sum COGS rows dated within [start, end], with a per-menu breakdown.

    Sales posted without an ingredient cost are counted in `unpriced_sales`
    and contribute only their other components.
    """
    if end < start:
        raise BusinessLogicError("Period end is before its start")

    rows = (
        await db.execute(
            select(CogsRecord, Menu.menu_code, Menu.name)
            .join(Menu, Menu.id == CogsRecord.menu_id)
            .where(CogsRecord.sale_date >= start, CogsRecord.sale_date <= end)
            .order_by(CogsRecord.sale_date, CogsRecord.sale_id)
        )
    ).all()

    period = CogsPeriod(start=start, end=end)
    by_menu: dict[str, MenuCogs] = {}

    for record, menu_code, menu_name in rows:
        menu = by_menu.get(record.menu_id)
        if menu is None:
            menu = by_menu[record.menu_id] = MenuCogs(record.menu_id, menu_code, menu_name)

        for target in (period, menu):
            target.sales_count += 1
            target.units_sold += record.quantity
            target.packaging_cost += record.packaging_cost
            target.labor_cost += record.labor_cost
            target.overhead_cost += record.overhead_cost
            if record.ingredient_cost is None:
                target.unpriced_sales += 1
                target.total_cogs += (
                    record.packaging_cost + record.labor_cost + record.overhead_cost
                )
            else:
                target.ingredient_cost += record.ingredient_cost
                target.total_cogs += record.total_cogs

    period.menus = sorted(by_menu.values(), key=lambda m: m.menu_code)
    return period
