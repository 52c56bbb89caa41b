"""Batch router — production batches and their cost lines.

Endpoints:
    POST   /api/batches/                                 Create batch
    GET    /api/batches/                                 List batches
    GET    /api/batches/{batch_id}                       Batch with cost lines
    GET    /api/batches/{batch_id}/totals                Total and per-unit cost
    POST   /api/batches/{batch_id}/cost-lines            Add cost line
    PATCH  /api/batches/{batch_id}/cost-lines/{line_id}  Update cost line
    DELETE /api/batches/{batch_id}/cost-lines/{line_id}  Remove cost line
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kitchenledger.database import get_db
from kitchenledger.deps import get_actor
from kitchenledger.models.batch import Batch
from kitchenledger.schemas.batch import (
    BatchCreate,
    BatchOut,
    BatchTotalsOut,
    CostLineCreate,
    CostLineUpdate,
)
from kitchenledger.schemas.common import PaginatedResponse
from kitchenledger.services.cogs import (
    BatchTotals,
    add_cost_line,
    create_batch,
    get_batch,
    remove_cost_line,
    update_cost_line,
)

router = APIRouter()


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=BatchOut, status_code=status.HTTP_201_CREATED)
async def create(
    body: BatchCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    batch = await create_batch(
        db,
        quantity=body.quantity,
        actor=actor,
        menu_id=body.menu_id,
        production_date=body.production_date,
        expiry_date=body.expiry_date,
        notes=body.notes,
    )
    return await get_batch(db, batch.id)


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[BatchOut])
async def list_batches(
    menu_id: str | None = Query(None),
    batch_status: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    base_stmt = select(Batch)
    if menu_id:
        base_stmt = base_stmt.where(Batch.menu_id == menu_id)
    if batch_status:
        base_stmt = base_stmt.where(Batch.status == batch_status)

    count_stmt = select(func.count()).select_from(base_stmt.subquery())
    total = await db.scalar(count_stmt) or 0

    result = await db.execute(
        base_stmt
        .options(selectinload(Batch.cost_lines))
        .order_by(Batch.production_date.desc(), Batch.batch_number.desc())
        .limit(limit)
        .offset(offset)
    )
    return PaginatedResponse(
        items=[BatchOut.model_validate(b) for b in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


# ── Single batch ─────────────────────────────────────────────

@router.get("/{batch_id}", response_model=BatchOut)
async def get_batch_detail(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await get_batch(db, batch_id)


@router.get("/{batch_id}/totals", response_model=BatchTotalsOut)
async def get_totals(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Responds 422 UNDEFINED for a zero-quantity batch."""
    batch = await get_batch(db, batch_id)
    totals = BatchTotals(batch.id, batch.quantity, batch.total_cost, batch.cost_per_unit)
    return BatchTotalsOut(
        batch_id=totals.batch_id,
        quantity=totals.quantity,
        total_cost=totals.total_cost,
        cost_per_unit=totals.unit_cost(),
    )


# ── Cost lines ───────────────────────────────────────────────

@router.post(
    "/{batch_id}/cost-lines",
    response_model=BatchOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_cost_line(
    batch_id: str,
    body: CostLineCreate,
    db: AsyncSession = Depends(get_db),
):
    await add_cost_line(db, batch_id, **body.model_dump())
    return await get_batch(db, batch_id)


@router.patch("/{batch_id}/cost-lines/{line_id}", response_model=BatchOut)
async def patch_cost_line(
    batch_id: str,
    line_id: str,
    body: CostLineUpdate,
    db: AsyncSession = Depends(get_db),
):
    await update_cost_line(db, batch_id, line_id, **body.model_dump(exclude_unset=True))
    return await get_batch(db, batch_id)


@router.delete("/{batch_id}/cost-lines/{line_id}", response_model=BatchOut)
async def delete_cost_line(
    batch_id: str,
    line_id: str,
    db: AsyncSession = Depends(get_db),
):
    await remove_cost_line(db, batch_id, line_id)
    return await get_batch(db, batch_id)
