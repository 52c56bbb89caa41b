"""Inventory router — stock events, the ledger and maintenance.

Endpoints:
    POST  /api/inventory/purchases                         Record a purchase
    POST  /api/inventory/sales                             Record a sale
    POST  /api/inventory/adjustments                       Set stock to a counted value
    POST  /api/inventory/waste                             Write off stock
    GET   /api/inventory/ledger                            Ledger entries (filters)
    POST  /api/inventory/ledger/{entry_id}/correct         Compensating entry
    POST  /api/inventory/maintenance/repair-stock/{ingredient_id}  Re-fold stock
    POST  /api/inventory/maintenance/recalculate-costs     Recompute every cost
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.database import get_db
from kitchenledger.deps import get_actor, get_inventory_service
from kitchenledger.models.ledger import LedgerEntry
from kitchenledger.schemas.cogs import CogsOut
from kitchenledger.schemas.common import PaginatedResponse
from kitchenledger.schemas.inventory import (
    AdjustmentRequest,
    CorrectionRequest,
    CostUpdateOut,
    LedgerEntryOut,
    PurchaseRequest,
    RepairOut,
    SaleOut,
    SaleRequest,
    WasteRequest,
)
from kitchenledger.services.cogs import cogs_for_sale
from kitchenledger.services.costing import recalculate_all_costs
from kitchenledger.services.inventory import InventoryService
from kitchenledger.services.projector import repair_stock
from kitchenledger.utils.activity import log_activity

router = APIRouter()


# ── Business events ──────────────────────────────────────────

@router.post(
    "/purchases",
    response_model=LedgerEntryOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_purchase(
    body: PurchaseRequest,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
):
    return await service.record_purchase(
        body.ingredient_id,
        body.quantity,
        body.unit,
        body.unit_price,
        body.vendor,
        body.purchase_date,
        actor=actor,
        vendor_invoice=body.vendor_invoice,
        expiry_date=body.expiry_date,
        notes=body.notes,
    )


@router.post(
    "/sales",
    response_model=SaleOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_sale(
    body: SaleRequest,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
):
    """Deduct every recipe ingredient and post the sale's COGS."""
    sale, entries = await service.post_sale(
        body.menu_id,
        body.quantity,
        body.unit_price,
        body.order_date,
        actor=actor,
        packaging_cost=body.packaging_cost,
        labor_cost=body.labor_cost,
        overhead_cost=body.overhead_cost,
        notes=body.notes,
    )
    cogs = await cogs_for_sale(service.db, sale.id)
    return SaleOut(
        sale_id=sale.id,
        menu_id=sale.menu_id,
        quantity=sale.quantity,
        unit_price=sale.unit_price,
        total_amount=sale.total_amount,
        order_date=sale.order_date,
        entries=[LedgerEntryOut.model_validate(e) for e in entries],
        cogs=CogsOut.model_validate(cogs),
    )


@router.post(
    "/adjustments",
    response_model=LedgerEntryOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_adjustment(
    body: AdjustmentRequest,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
):
    return await service.record_adjustment(
        body.ingredient_id, body.new_stock, body.reason, actor=actor,
    )


@router.post(
    "/waste",
    response_model=LedgerEntryOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_waste(
    body: WasteRequest,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
):
    return await service.record_waste(
        body.ingredient_id,
        body.quantity,
        body.reason,
        actor=actor,
        waste_type=body.waste_type,
        waste_date=body.waste_date,
        lot_id=body.lot_id,
    )


# ── Ledger ───────────────────────────────────────────────────

@router.get("/ledger", response_model=PaginatedResponse[LedgerEntryOut])
async def list_ledger(
    ingredient_id: str | None = Query(None),
    transaction_type: str | None = Query(None),
    reference_type: str | None = Query(None),
    reference_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Entries newest first (highest id = latest committed)."""
    base_stmt = select(LedgerEntry)
    if ingredient_id:
        base_stmt = base_stmt.where(LedgerEntry.ingredient_id == ingredient_id)
    if transaction_type:
        base_stmt = base_stmt.where(LedgerEntry.transaction_type == transaction_type)
    if reference_type:
        base_stmt = base_stmt.where(LedgerEntry.reference_type == reference_type)
    if reference_id:
        base_stmt = base_stmt.where(LedgerEntry.reference_id == reference_id)

    count_stmt = select(func.count()).select_from(base_stmt.subquery())
    total = await db.scalar(count_stmt) or 0

    result = await db.execute(
        base_stmt.order_by(LedgerEntry.id.desc()).limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[LedgerEntryOut.model_validate(e) for e in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/ledger/{entry_id}/correct",
    response_model=LedgerEntryOut,
    status_code=status.HTTP_201_CREATED,
)
async def correct_entry(
    entry_id: int,
    body: CorrectionRequest,
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
):
    return await service.correct_entry(entry_id, body.reason, actor=actor)


# ── Maintenance ──────────────────────────────────────────────

@router.post("/maintenance/repair-stock/{ingredient_id}", response_model=RepairOut)
async def repair_ingredient_stock(
    ingredient_id: str,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Re-fold the full ledger into current_stock and report any drift."""
    result = await repair_stock(db, ingredient_id)
    await log_activity(
        db, actor,
        action="stock_repaired",
        entity_type="ingredient",
        entity_id=result.ingredient_id,
        entity_code=result.ingredient_name,
        summary=f"{result.previous_stock} -> {result.recomputed_stock}",
        details={"drift": str(result.drift), "entries": result.entry_count},
    )
    return RepairOut.model_validate(result)


@router.post("/maintenance/recalculate-costs", response_model=list[CostUpdateOut])
async def recalculate_costs(
    service: InventoryService = Depends(get_inventory_service),
    actor: str = Depends(get_actor),
):
    updates = await recalculate_all_costs(service.db, service.policy, service.today)
    await log_activity(
        service.db, actor,
        action="costs_recalculated",
        entity_type="ingredient",
        summary=f"{sum(1 for u in updates if u.changed)} of {len(updates)} costs changed",
        details={"policy": service.policy.name},
    )
    return [CostUpdateOut.model_validate(u) for u in updates]
