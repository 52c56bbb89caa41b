"""Lot tracker — per-purchase stock lots for FIFO costing and expiry.

Lifecycle:
  active → depleted   remaining reaches zero through FIFO draws
  active → recalled   pulled by hand; no longer eligible for FIFO
  (expired lots stay "active" until someone wastes them; the expiry
   report only reads)

remaining_quantity only ever goes down, through draws or when its purchase
is corrected away.  consume_fifo checks the total available before touching
any lot, so a failed draw leaves every lot as it was.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.middleware.exceptions import (
    BusinessLogicError,
    InsufficientStock,
    InvalidQuantity,
    ResourceNotFoundError,
)
from kitchenledger.models.events import Purchase
from kitchenledger.models.ingredient import Ingredient
from kitchenledger.models.lot import Lot
from kitchenledger.utils.activity import log_activity
from kitchenledger.utils.numbering import generate_code

logger = logging.getLogger(__name__)


@dataclass
class LotDraw:
    lot: Lot
    quantity: Decimal

    @property
    def cost(self) -> Decimal | None:
        if self.lot.unit_cost is None:
            return None
        return self.quantity * self.lot.unit_cost


@dataclass
class ExpiredLot:
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


async def create_lot(
    db: AsyncSession,
    purchase: Purchase,
    *,
    expiry_date: date | None = None,
    notes: str | None = None,
) -> Lot:
    """Open a lot holding everything a purchase brought in."""
    lot = Lot(
        lot_number=await generate_code(db, "lot", purchase.purchase_date),
        ingredient_id=purchase.ingredient_id,
        purchase_id=purchase.id,
        quantity=purchase.quantity,
        remaining_quantity=purchase.quantity,
        unit=purchase.unit,
        unit_cost=purchase.unit_price,
        received_date=purchase.purchase_date,
        expiry_date=expiry_date,
        status="active",
        notes=notes,
    )
    db.add(lot)
    await db.flush()
    return lot


def _eligible_lots(ingredient_id: str):
    return (
        select(Lot)
        .where(
            Lot.ingredient_id == ingredient_id,
            Lot.status == "active",
            Lot.remaining_quantity > 0,
        )
        .order_by(Lot.received_date, Lot.id)
    )


async def available_quantity(db: AsyncSession, ingredient_id: str) -> Decimal:
    lots = (await db.execute(_eligible_lots(ingredient_id))).scalars().all()
    return sum((lot.remaining_quantity for lot in lots), Decimal("0"))


async def consume_fifo(
    db: AsyncSession,
    ingredient_id: str,
    quantity: Decimal,
) -> list[LotDraw]:
    """Draw `quantity` from the oldest eligible lots.

    Raises:
        InvalidQuantity: quantity is not positive.
        InsufficientStock: the eligible lots hold less than `quantity`.
    """
    if quantity <= 0:
        raise InvalidQuantity("FIFO draw quantity must be positive")

    lots = (
        await db.execute(
            _eligible_lots(ingredient_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    available = sum((lot.remaining_quantity for lot in lots), Decimal("0"))
    if quantity > available:
        raise InsufficientStock(ingredient_id, quantity, available)

    draws: list[LotDraw] = []
    outstanding = quantity
    for lot in lots:
        if outstanding <= 0:
            break
        taken = min(lot.remaining_quantity, outstanding)
        lot.remaining_quantity -= taken
        if lot.remaining_quantity == 0:
            lot.status = "depleted"
        outstanding -= taken
        draws.append(LotDraw(lot=lot, quantity=taken))

    logger.debug(
        "FIFO draw of %s from %s: %s",
        quantity, ingredient_id,
        ", ".join(f"{d.lot.lot_number}={d.quantity}" for d in draws),
    )
    return draws


async def consume_lot(
    db: AsyncSession,
    lot_id: int,
    ingredient_id: str,
    quantity: Decimal,
) -> LotDraw:
    """Draw from one named lot, e.g. to waste an expired or recalled lot."""
    lot = (
        await db.execute(
            select(Lot)
            .where(Lot.id == lot_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if lot is None:
        raise ResourceNotFoundError("Lot", str(lot_id))
    if lot.ingredient_id != ingredient_id:
        raise BusinessLogicError(
            f"Lot {lot.lot_number} does not hold ingredient {ingredient_id}"
        )
    if lot.status not in ("active", "recalled"):
        raise BusinessLogicError(f"Lot {lot.lot_number} is {lot.status}")
    if quantity > lot.remaining_quantity:
        raise InsufficientStock(ingredient_id, quantity, lot.remaining_quantity)

    lot.remaining_quantity -= quantity
    if lot.remaining_quantity == 0:
        lot.status = "depleted"
    return LotDraw(lot=lot, quantity=quantity)


async def void_purchase_lot(
    db: AsyncSession,
    purchase_id: int,
    quantity: Decimal,
) -> LotDraw | None:
    """Take a reversed purchase's quantity back out of its lot.

    Whatever the lot still holds, up to `quantity`, is removed, so the lot
    ends up depleted and drops out of FIFO draws and pricing.
    """
    lot = (
        await db.execute(
            select(Lot)
            .where(Lot.purchase_id == purchase_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if lot is None:
        return None

    taken = min(lot.remaining_quantity, quantity)
    lot.remaining_quantity -= taken
    if lot.remaining_quantity == 0:
        lot.status = "depleted"
    logger.info("Lot %s voided with its purchase, %s removed", lot.lot_number, taken)
    return LotDraw(lot=lot, quantity=taken)


async def expired_lots(db: AsyncSession, as_of: date) -> list[ExpiredLot]:
    """Active lots past expiry that still hold stock, oldest expiry first."""
    rows = (
        await db.execute(
            select(Lot, Ingredient.name)
            .join(Ingredient, Ingredient.id == Lot.ingredient_id)
            .where(
                Lot.status == "active",
                Lot.remaining_quantity > 0,
                Lot.expiry_date.is_not(None),
                Lot.expiry_date < as_of,
            )
            .order_by(Lot.expiry_date, Lot.id)
        )
    ).all()

    report = []
    for lot, ingredient_name in rows:
        report.append(ExpiredLot(
            lot_id=lot.id,
            lot_number=lot.lot_number,
            ingredient_id=lot.ingredient_id,
            ingredient_name=ingredient_name,
            remaining_quantity=lot.remaining_quantity,
            unit=lot.unit,
            unit_cost=lot.unit_cost,
            received_date=lot.received_date,
            expiry_date=lot.expiry_date,
            days_expired=(as_of - lot.expiry_date).days,
            waste_value=(
                lot.remaining_quantity * lot.unit_cost
                if lot.unit_cost is not None else None
            ),
        ))
    return report


async def get_lot(db: AsyncSession, lot_id: int) -> Lot:
    lot = (await db.execute(select(Lot).where(Lot.id == lot_id))).scalar_one_or_none()
    if lot is None:
        raise ResourceNotFoundError("Lot", str(lot_id))
    return lot


async def recall_lot(
    db: AsyncSession,
    lot_id: int,
    actor: str,
    reason: str | None = None,
) -> Lot:
    """Mark a lot recalled.  Its stock leaves only through a waste entry."""
    lot = await get_lot(db, lot_id)
    if lot.status != "active":
        raise BusinessLogicError(
            f"Lot {lot.lot_number} is {lot.status} and cannot be recalled"
        )

    lot.status = "recalled"
    await log_activity(
        db, actor,
        action="lot_recalled",
        entity_type="lot",
        entity_id=str(lot.id),
        entity_code=lot.lot_number,
        summary=reason or f"Recalled {lot.lot_number}",
        details={"remaining_quantity": str(lot.remaining_quantity)},
    )
    logger.info("Lot %s recalled by %s", lot.lot_number, actor)
    return lot
