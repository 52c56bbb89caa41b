"""Lot router — stock lots and the expiry report.

Endpoints:
    GET   /api/lots/                    List lots (with filters)
    GET   /api/lots/expired             Active lots past expiry, with waste value
    GET   /api/lots/{lot_id}            Single lot detail
    POST  /api/lots/{lot_id}/recall     Mark a lot recalled
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.database import get_db
from kitchenledger.deps import get_actor, get_inventory_service
from kitchenledger.models.lot import Lot
from kitchenledger.schemas.common import PaginatedResponse
from kitchenledger.schemas.lot import ExpiredLotOut, LotOut, LotRecallRequest
from kitchenledger.services.inventory import InventoryService
from kitchenledger.services.lots import get_lot, recall_lot

router = APIRouter()


# ── List lots ────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[LotOut])
async def list_lots(
    ingredient_id: str | None = Query(None),
    lot_status: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    base_stmt = select(Lot)
    if ingredient_id:
        base_stmt = base_stmt.where(Lot.ingredient_id == ingredient_id)
    if lot_status:
        base_stmt = base_stmt.where(Lot.status == lot_status)

    count_stmt = select(func.count()).select_from(base_stmt.subquery())
    total = await db.scalar(count_stmt) or 0

    # FIFO order: the lot that will be drawn next comes first
    result = await db.execute(
        base_stmt
        .order_by(Lot.received_date, Lot.id)
        .limit(limit)
        .offset(offset)
    )
    return PaginatedResponse(
        items=[LotOut.model_validate(lot) for lot in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/expired", response_model=list[ExpiredLotOut])
async def list_expired_lots(
    as_of: date | None = Query(None),
    service: InventoryService = Depends(get_inventory_service),
):
    report = await service.expired_lots(as_of)
    return [ExpiredLotOut.model_validate(item) for item in report]


# ── Single lot ───────────────────────────────────────────────

@router.get("/{lot_id}", response_model=LotOut)
async def get_lot_detail(
    lot_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await get_lot(db, lot_id)


@router.post("/{lot_id}/recall", response_model=LotOut)
async def recall(
    lot_id: int,
    body: LotRecallRequest | None = None,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Pull a lot out of FIFO rotation.  Its stock stays until wasted."""
    return await recall_lot(db, lot_id, actor, body.reason if body else None)
