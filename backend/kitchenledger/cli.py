"""Management CLI for ledger maintenance.

Usage:
    python -m kitchenledger.cli repair-stock <ingredient_id>   # Re-fold one ingredient
    python -m kitchenledger.cli repair-stock --all             # Re-fold every ingredient
    python -m kitchenledger.cli recalculate-costs              # Recompute every cost
    python -m kitchenledger.cli expired-lots                   # Print the expiry report

Each command runs in one transaction: it commits only if it finishes.
"""

import asyncio
import logging
import sys
from datetime import date

from kitchenledger.config import settings
from kitchenledger.database import async_session
from kitchenledger.services.costing import get_policy, recalculate_all_costs
from kitchenledger.services.lots import expired_lots
from kitchenledger.services.projector import repair_all, repair_stock
from kitchenledger.utils.activity import log_activity

ACTOR = "cli"


async def _repair(target: str) -> int:
    async with async_session() as db:
        try:
            if target == "--all":
                results = await repair_all(db)
            else:
                results = [await repair_stock(db, target)]
            for r in results:
                if r.drift:
                    await log_activity(
                        db, ACTOR,
                        action="stock_repaired",
                        entity_type="ingredient",
                        entity_id=r.ingredient_id,
                        entity_code=r.ingredient_name,
                        summary=f"{r.previous_stock} -> {r.recomputed_stock}",
                        details={"drift": str(r.drift), "entries": r.entry_count},
                    )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    drifted = [r for r in results if r.drift]
    for r in results:
        marker = "FIXED" if r.drift else "OK"
        print(f"  {marker:5} {r.ingredient_name}: {r.previous_stock} -> {r.recomputed_stock}")
    print(f"\n{len(results)} ingredient(s) checked, {len(drifted)} repaired")
    return 0


async def _recalculate() -> int:
    policy = get_policy(settings.costing_policy, settings.cost_window_days)
    async with async_session() as db:
        try:
            updates = await recalculate_all_costs(db, policy, date.today())
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    for u in updates:
        marker = "STALE" if u.stale else ("CHANGED" if u.changed else "OK")
        print(f"  {marker:7} {u.ingredient_name}: {u.old_cost} -> {u.new_cost} ({u.purchase_count} purchases)")
    print(f"\n{len(updates)} ingredient(s) recalculated with {policy.name}")
    return 0


async def _expired() -> int:
    async with async_session() as db:
        report = await expired_lots(db, date.today())

    for lot in report:
        value = lot.waste_value if lot.waste_value is not None else "unpriced"
        print(
            f"  {lot.lot_number} {lot.ingredient_name}: {lot.remaining_quantity} {lot.unit} "
            f"expired {lot.expiry_date} ({lot.days_expired}d), value {value}"
        )
    print(f"\n{len(report)} expired lot(s)")
    return 0


def main(argv: list[str]) -> int:
    cmd = argv[1] if len(argv) > 1 else ""
    if cmd == "repair-stock" and len(argv) > 2:
        return asyncio.run(_repair(argv[2]))
    if cmd == "recalculate-costs":
        return asyncio.run(_recalculate())
    if cmd == "expired-lots":
        return asyncio.run(_expired())

    print("Usage: python -m kitchenledger.cli [repair-stock <id>|--all | recalculate-costs | expired-lots]")
    return 2


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(main(sys.argv))
