"""Stock projector — keeps Ingredient.current_stock equal to the ledger fold.

current_stock is a materialized view of the ledger: the sum of every
quantity_change for the ingredient, applied in commit order.  The live path
(`apply_entry`) adds one delta while the ingredient row is locked; the
repair path (`repair_stock`) recomputes the whole fold from scratch and
reports any drift it had to fix.

Locking:
    Every writer takes `SELECT ... FOR UPDATE` on the ingredient row before
    reading current_stock.  When one event touches several ingredients
    (a sale of a multi-ingredient menu) the rows are locked in ascending id
    order so two concurrent sales can never deadlock on each other.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.middleware.exceptions import UnknownIngredient
from kitchenledger.models.ingredient import Ingredient
from kitchenledger.models.ledger import LedgerEntry

logger = logging.getLogger(__name__)


@dataclass
class RepairResult:
    ingredient_id: str
    ingredient_name: str
    previous_stock: Decimal
    recomputed_stock: Decimal
    entry_count: int

    @property
    def drift(self) -> Decimal:
        return self.recomputed_stock - self.previous_stock


async def lock_ingredient(
    db: AsyncSession,
    ingredient_id: str,
    *,
    include_inactive: bool = False,
) -> Ingredient:
    """Load and row-lock one ingredient, refreshing any cached copy."""
    stmt = (
        select(Ingredient)
        .where(Ingredient.id == ingredient_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    ingredient = (await db.execute(stmt)).scalar_one_or_none()
    if ingredient is None or (not ingredient.is_active and not include_inactive):
        raise UnknownIngredient(ingredient_id)
    return ingredient


async def lock_ingredients(
    db: AsyncSession,
    ingredient_ids,
) -> dict[str, Ingredient]:
    """Lock several ingredients in ascending id order.

    Raises UnknownIngredient for the first id that is missing or inactive.
    """
    locked: dict[str, Ingredient] = {}
    for ingredient_id in sorted(set(ingredient_ids)):
        locked[ingredient_id] = await lock_ingredient(db, ingredient_id)
    return locked


def apply_entry(ingredient: Ingredient, entry: LedgerEntry) -> Decimal:
    """Project one ledger entry onto its (locked) ingredient."""
    ingredient.current_stock = (ingredient.current_stock or Decimal("0")) + entry.quantity_change
    return ingredient.current_stock


async def fold_ledger(db: AsyncSession, ingredient_id: str) -> tuple[Decimal, int]:
    """Sum every entry for the ingredient in commit order.

    Returns (total, entry_count).  The sum is taken in Python so the result
    is exact Decimal arithmetic regardless of the database backend.
    """
    result = await db.execute(
        select(LedgerEntry.quantity_change)
        .where(LedgerEntry.ingredient_id == ingredient_id)
        .order_by(LedgerEntry.id)
    )
    total = Decimal("0")
    count = 0
    for change in result.scalars():
        total += change
        count += 1
    return total, count


async def repair_stock(db: AsyncSession, ingredient_id: str) -> RepairResult:
    """Recompute current_stock from the full ledger and overwrite it."""
    ingredient = await lock_ingredient(db, ingredient_id, include_inactive=True)
    previous = ingredient.current_stock or Decimal("0")
    recomputed, count = await fold_ledger(db, ingredient_id)

    ingredient.current_stock = recomputed
    result = RepairResult(
        ingredient_id=ingredient.id,
        ingredient_name=ingredient.name,
        previous_stock=previous,
        recomputed_stock=recomputed,
        entry_count=count,
    )
    if result.drift:
        logger.warning(
            "Stock drift repaired for %s (%s): %s -> %s",
            ingredient.name, ingredient.id, previous, recomputed,
        )
    return result


async def repair_all(db: AsyncSession) -> list[RepairResult]:
    """Run `repair_stock` over every ingredient, active or not."""
    ids = (
        await db.execute(select(Ingredient.id).order_by(Ingredient.id))
    ).scalars().all()

    results = [await repair_stock(db, ingredient_id) for ingredient_id in ids]
    drifted = sum(1 for r in results if r.drift)
    logger.info("Stock repair: %d ingredients checked, %d drifted", len(results), drifted)
    return results
