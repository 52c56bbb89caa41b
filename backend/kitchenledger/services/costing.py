"""Costing policy engine — derives Ingredient.cost_per_unit.

Three interchangeable policies, one selected per deployment through
`settings.costing_policy`:

  latest            unit price of the most recent priced purchase
  weighted_average  Σ(qty × price) / Σ(qty) over priced purchases in the
                    trailing window (default 90 days), falling back to the
                    latest price when the window is empty
  fifo              unit cost of the oldest active priced lot that still has stock

A policy is a pure function of the stored purchases/lots and the `as_of`
date handed in by the caller; nothing reads the wall clock.  When a policy
has no data it raises StaleCostData.  `recompute_ingredient_cost` turns that
into a flagged ingredient (cost_needs_review) that keeps its previous cost,
so a missing price is never recorded as zero.

Purchases whose ledger entry has been reversed by a correction are left out
of every price calculation.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import String, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.middleware.exceptions import BusinessLogicError, StaleCostData
from kitchenledger.models.events import Purchase
from kitchenledger.models.ingredient import Ingredient
from kitchenledger.models.ledger import LedgerEntry
from kitchenledger.models.lot import Lot

logger = logging.getLogger(__name__)

COST_QUANT = Decimal("0.0001")


def quantize_cost(value: Decimal) -> Decimal:
    return Decimal(value).quantize(COST_QUANT, rounding=ROUND_HALF_UP)


def live_purchases():
    """Priced purchases whose ledger entry has not been corrected away."""
    corrected = select(LedgerEntry.corrects_entry_id).where(
        LedgerEntry.corrects_entry_id.is_not(None)
    )
    voided = select(LedgerEntry.reference_id).where(
        LedgerEntry.reference_type == "purchase",
        LedgerEntry.id.in_(corrected),
    )
    return select(Purchase).where(
        Purchase.unit_price.is_not(None),
        Purchase.unit_price > 0,
        cast(Purchase.id, String).not_in(voided),
    )


# ── Policies ────────────────────────────────────────────────


class CostingPolicy:
    """Strategy interface: compute one ingredient's unit cost as of a date."""

    name: str = ""
    # FIFO needs a lot per purchase and a cost refresh after every draw
    tracks_lots: bool = False

    async def unit_cost(
        self, db: AsyncSession, ingredient: Ingredient, as_of: date
    ) -> Decimal:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class LatestPricePolicy(CostingPolicy):
    name = "latest"

    async def unit_cost(self, db, ingredient, as_of):
        stmt = (
            live_purchases()
            .where(
                Purchase.ingredient_id == ingredient.id,
                Purchase.purchase_date <= as_of,
            )
            .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
            .limit(1)
        )
        purchase = (await db.execute(stmt)).scalar_one_or_none()
        if purchase is None:
            raise StaleCostData(
                f"No priced purchase for {ingredient.name}",
                ingredient_ids=[ingredient.id],
            )
        return quantize_cost(purchase.unit_price)


class WeightedAveragePolicy(CostingPolicy):
    name = "weighted_average"

    def __init__(self, window_days: int = 90):
        if window_days <= 0:
            raise ValueError("window_days must be positive")
        self.window_days = window_days
        self._fallback = LatestPricePolicy()

    async def unit_cost(self, db, ingredient, as_of):
        since = as_of - timedelta(days=self.window_days)
        stmt = live_purchases().where(
            Purchase.ingredient_id == ingredient.id,
            Purchase.purchase_date >= since,
            Purchase.purchase_date <= as_of,
        )
        purchases = (await db.execute(stmt)).scalars().all()

        total_qty = sum((p.quantity for p in purchases), Decimal("0"))
        if total_qty > 0:
            total_value = sum((p.quantity * p.unit_price for p in purchases), Decimal("0"))
            return quantize_cost(total_value / total_qty)

        logger.debug(
            "No purchases of %s in the last %d days, using latest price",
            ingredient.name, self.window_days,
        )
        return await self._fallback.unit_cost(db, ingredient, as_of)


class FifoPolicy(CostingPolicy):
    name = "fifo"
    tracks_lots = True

    async def unit_cost(self, db, ingredient, as_of):
        stmt = (
            select(Lot)
            .where(
                Lot.ingredient_id == ingredient.id,
                Lot.status == "active",
                Lot.remaining_quantity > 0,
                Lot.unit_cost > 0,
            )
            .order_by(Lot.received_date, Lot.id)
            .limit(1)
        )
        lot = (await db.execute(stmt)).scalar_one_or_none()
        if lot is None:
            raise StaleCostData(
                f"No priced active lot for {ingredient.name}",
                ingredient_ids=[ingredient.id],
            )
        return quantize_cost(lot.unit_cost)


POLICIES = {
    "latest": LatestPricePolicy,
    "weighted_average": WeightedAveragePolicy,
    "fifo": FifoPolicy,
}


def get_policy(name: str, window_days: int = 90) -> CostingPolicy:
    """Build the policy registered under `name`."""
    if name not in POLICIES:
        raise BusinessLogicError(
            f"Unknown costing policy: {name}",
            details={"available": sorted(POLICIES)},
        )
    if name == "weighted_average":
        return WeightedAveragePolicy(window_days)
    return POLICIES[name]()


# ── Applying a policy ───────────────────────────────────────


@dataclass
class CostUpdate:
    ingredient_id: str
    ingredient_name: str
    old_cost: Decimal | None
    new_cost: Decimal | None
    stale: bool = False
    purchase_count: int | None = None

    @property
    def changed(self) -> bool:
        return not self.stale and self.old_cost != self.new_cost


async def recompute_ingredient_cost(
    db: AsyncSession,
    ingredient: Ingredient,
    policy: CostingPolicy,
    as_of: date,
) -> CostUpdate:
    """Write the policy's unit cost onto the ingredient.

    Without data the previous cost is kept and the ingredient is flagged
    for review instead.
    """
    old_cost = ingredient.cost_per_unit
    try:
        new_cost = await policy.unit_cost(db, ingredient, as_of)
    except StaleCostData as exc:
        ingredient.cost_needs_review = True
        logger.warning(
            "Cost for %s (%s) left at %s: %s",
            ingredient.name, ingredient.id, old_cost, exc.message,
        )
        return CostUpdate(ingredient.id, ingredient.name, old_cost, old_cost, stale=True)

    ingredient.cost_per_unit = new_cost
    ingredient.cost_needs_review = False
    ingredient.cost_updated_at = datetime.utcnow()
    update = CostUpdate(ingredient.id, ingredient.name, old_cost, new_cost)
    if update.changed:
        logger.info(
            "Cost of %s %s -> %s (%s)", ingredient.name, old_cost, new_cost, policy.name,
        )
    return update


async def recalculate_all_costs(
    db: AsyncSession,
    policy: CostingPolicy,
    as_of: date,
) -> list[CostUpdate]:
    """Recompute every active ingredient and refresh affected menus."""
    from kitchenledger.services.projector import lock_ingredient
    from kitchenledger.services.recipe_cost import recompute_menus_for_ingredient

    counts = dict(
        (
            await db.execute(
                live_purchases()
                .with_only_columns(Purchase.ingredient_id, func.count(Purchase.id))
                .group_by(Purchase.ingredient_id)
            )
        ).all()
    )
    ids = (
        await db.execute(
            select(Ingredient.id)
            .where(Ingredient.is_active == True)  # noqa: E712
            .order_by(Ingredient.id)
        )
    ).scalars().all()

    updates = []
    for ingredient_id in ids:
        ingredient = await lock_ingredient(db, ingredient_id)
        update = await recompute_ingredient_cost(db, ingredient, policy, as_of)
        update.purchase_count = counts.get(ingredient_id, 0)
        if update.changed:
            await recompute_menus_for_ingredient(db, ingredient_id)
        updates.append(update)

    logger.info(
        "Recalculated %d ingredient costs (%d changed, %d without data)",
        len(updates),
        sum(1 for u in updates if u.changed),
        sum(1 for u in updates if u.stale),
    )
    return updates


# ── Purchase price analysis ─────────────────────────────────


@dataclass
class PriceAnalysis:
    ingredient_id: str
    ingredient_name: str
    unit: str
    current_cost: Decimal | None
    purchase_count: int
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    avg_price: Decimal | None = None
    weighted_avg_price: Decimal | None = None
    total_quantity: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    first_purchase_date: date | None = None
    last_purchase_date: date | None = None


async def purchase_price_analysis(db: AsyncSession, ingredient: Ingredient) -> PriceAnalysis:
    purchases = (
        await db.execute(
            live_purchases()
            .where(Purchase.ingredient_id == ingredient.id)
            .order_by(Purchase.purchase_date, Purchase.id)
        )
    ).scalars().all()

    analysis = PriceAnalysis(
        ingredient_id=ingredient.id,
        ingredient_name=ingredient.name,
        unit=ingredient.unit,
        current_cost=ingredient.cost_per_unit,
        purchase_count=len(purchases),
    )
    if not purchases:
        return analysis

    prices = [p.unit_price for p in purchases]
    analysis.min_price = min(prices)
    analysis.max_price = max(prices)
    analysis.avg_price = quantize_cost(sum(prices, Decimal("0")) / len(prices))
    analysis.total_quantity = sum((p.quantity for p in purchases), Decimal("0"))
    analysis.total_amount = sum((p.total_amount for p in purchases), Decimal("0"))
    if analysis.total_quantity > 0:
        analysis.weighted_avg_price = quantize_cost(
            sum((p.quantity * p.unit_price for p in purchases), Decimal("0"))
            / analysis.total_quantity
        )
    analysis.first_purchase_date = purchases[0].purchase_date
    analysis.last_purchase_date = purchases[-1].purchase_date
    return analysis
