"""Costing policy tests: latest, weighted average, stale data handling."""

from decimal import Decimal

import pytest

from kitchenledger.middleware.exceptions import BusinessLogicError, StaleCostData
from kitchenledger.services.costing import (
    FifoPolicy,
    LatestPricePolicy,
    WeightedAveragePolicy,
    get_policy,
    purchase_price_analysis,
    recalculate_all_costs,
    recompute_ingredient_cost,
)

from conftest import TODAY, days_ago


async def buy(service, ingredient, quantity, price, when=None):
    return await service.record_purchase(
        ingredient.id,
        Decimal(quantity),
        unit_price=Decimal(price) if price is not None else None,
        vendor="Makro",
        purchase_date=when,
        actor="tester",
    )


@pytest.mark.costing
@pytest.mark.asyncio
class TestWeightedAverage:

    async def test_weighted_by_quantity(self, service, shrimp):
        """100 @ 5 and 50 @ 6 average to 800 / 150."""
        await buy(service, shrimp, "100", "5")
        await buy(service, shrimp, "50", "6")

        assert shrimp.cost_per_unit == Decimal("5.3333")
        assert shrimp.cost_needs_review is False

    async def test_window_excludes_old_purchases(self, service, shrimp):
        await buy(service, shrimp, "10", "8", days_ago(200))
        await buy(service, shrimp, "10", "4", days_ago(10))

        assert shrimp.cost_per_unit == Decimal("4.0000")

    async def test_empty_window_falls_back_to_latest(self, service, shrimp):
        """Nothing bought in 90 days: use the most recent price instead."""
        await buy(service, shrimp, "10", "8", days_ago(200))
        await buy(service, shrimp, "10", "4", days_ago(120))

        assert shrimp.cost_per_unit == Decimal("4.0000")

    async def test_zero_price_purchase_ignored(self, service, shrimp):
        await buy(service, shrimp, "10", "5")
        await buy(service, shrimp, "10", "0")

        assert shrimp.cost_per_unit == Decimal("5.0000")
        assert shrimp.current_stock == Decimal("20")

    async def test_corrected_purchase_excluded(self, service, shrimp):
        """Reversing a purchase's ledger entry removes it from the average."""
        await buy(service, shrimp, "10", "5")
        wrong = await buy(service, shrimp, "10", "9")
        assert shrimp.cost_per_unit == Decimal("7.0000")

        await service.correct_entry(wrong.id, "Invoice belonged to another branch", actor="manager")

        assert shrimp.cost_per_unit == Decimal("5.0000")
        assert shrimp.current_stock == Decimal("10")


@pytest.mark.costing
@pytest.mark.asyncio
class TestLatestPrice:

    async def test_most_recent_purchase_date_wins(self, latest_service, shrimp):
        await buy(latest_service, shrimp, "10", "5", days_ago(5))
        await buy(latest_service, shrimp, "10", "7", days_ago(1))
        # back-dated invoice entered last
        await buy(latest_service, shrimp, "10", "9", days_ago(3))

        assert shrimp.cost_per_unit == Decimal("7.0000")

    async def test_same_day_uses_last_recorded(self, latest_service, shrimp):
        await buy(latest_service, shrimp, "10", "5")
        await buy(latest_service, shrimp, "10", "6")

        assert shrimp.cost_per_unit == Decimal("6.0000")


@pytest.mark.costing
@pytest.mark.asyncio
class TestStaleCostData:
    """Missing price data is flagged, never recorded as zero."""

    async def test_policy_raises_without_data(self, db_session, shrimp):
        with pytest.raises(StaleCostData) as exc_info:
            await LatestPricePolicy().unit_cost(db_session, shrimp, TODAY)
        assert exc_info.value.ingredient_ids == [shrimp.id]

    async def test_previous_cost_kept_and_flagged(self, db_session, shrimp):
        shrimp.cost_per_unit = Decimal("3.5000")

        update = await recompute_ingredient_cost(db_session, shrimp, LatestPricePolicy(), TODAY)

        assert update.stale is True
        assert update.changed is False
        assert shrimp.cost_per_unit == Decimal("3.5000")
        assert shrimp.cost_needs_review is True

    async def test_unpriced_purchase_leaves_cost_unknown(self, service, shrimp):
        await buy(service, shrimp, "10", None)

        assert shrimp.current_stock == Decimal("10")
        assert shrimp.cost_per_unit is None
        assert shrimp.cost_needs_review is True

    async def test_priced_purchase_clears_flag(self, service, shrimp):
        await buy(service, shrimp, "10", None)
        await buy(service, shrimp, "10", "12")

        assert shrimp.cost_per_unit == Decimal("12.0000")
        assert shrimp.cost_needs_review is False
        assert shrimp.cost_updated_at is not None


@pytest.mark.costing
class TestPolicyRegistry:

    def test_known_policies(self):
        assert isinstance(get_policy("latest"), LatestPricePolicy)
        assert isinstance(get_policy("fifo"), FifoPolicy)
        assert get_policy("weighted_average", 30).window_days == 30

    def test_unknown_policy(self):
        with pytest.raises(BusinessLogicError) as exc_info:
            get_policy("lifo")
        assert "fifo" in exc_info.value.details["available"]

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            WeightedAveragePolicy(0)


@pytest.mark.costing
@pytest.mark.asyncio
class TestRecalculateAll:

    async def test_recalculate_under_another_policy(self, db_session, service, shrimp, rice):
        """Switching policy and recalculating rewrites every active ingredient."""
        await buy(service, shrimp, "100", "5")
        await buy(service, shrimp, "50", "6")

        updates = await recalculate_all_costs(db_session, LatestPricePolicy(), TODAY)

        by_id = {u.ingredient_id: u for u in updates}
        assert by_id[shrimp.id].old_cost == Decimal("5.3333")
        assert by_id[shrimp.id].new_cost == Decimal("6.0000")
        assert by_id[shrimp.id].changed is True
        assert by_id[shrimp.id].purchase_count == 2
        assert by_id[rice.id].stale is True
        assert by_id[rice.id].purchase_count == 0


@pytest.mark.costing
@pytest.mark.asyncio
class TestPriceAnalysis:

    async def test_summary_of_purchases(self, db_session, service, shrimp):
        await buy(service, shrimp, "10", "5", days_ago(20))
        await buy(service, shrimp, "30", "7", days_ago(2))

        analysis = await purchase_price_analysis(db_session, shrimp)

        assert analysis.purchase_count == 2
        assert analysis.min_price == Decimal("5")
        assert analysis.max_price == Decimal("7")
        assert analysis.avg_price == Decimal("6.0000")
        assert analysis.weighted_avg_price == Decimal("6.5000")
        assert analysis.total_quantity == Decimal("40")
        assert analysis.total_amount == Decimal("260.00")
        assert analysis.first_purchase_date == days_ago(20)
        assert analysis.last_purchase_date == days_ago(2)

    async def test_no_purchases(self, db_session, shrimp):
        analysis = await purchase_price_analysis(db_session, shrimp)

        assert analysis.purchase_count == 0
        assert analysis.avg_price is None
