"""Ingredient router — catalog and stock views.

Endpoints:
    POST  /api/ingredients/                          Create ingredient
    GET   /api/ingredients/                          List ingredients
    GET   /api/ingredients/low-stock                 At or below minimum stock
    GET   /api/ingredients/{ingredient_id}           Single ingredient
    GET   /api/ingredients/{ingredient_id}/stock     Current stock
    GET   /api/ingredients/{ingredient_id}/cost-analysis  Purchase price analysis
    POST  /api/ingredients/{ingredient_id}/deactivate     Soft deactivation
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.database import get_db
from kitchenledger.deps import get_actor, get_inventory_service
from kitchenledger.middleware.exceptions import BusinessLogicError, UnknownIngredient
from kitchenledger.models.ingredient import Ingredient
from kitchenledger.schemas.common import PaginatedResponse
from kitchenledger.schemas.ingredient import (
    IngredientCreate,
    IngredientOut,
    LowStockOut,
    PriceAnalysisOut,
    StockOut,
)
from kitchenledger.services.costing import purchase_price_analysis
from kitchenledger.services.inventory import InventoryService
from kitchenledger.utils.activity import log_activity

router = APIRouter()


async def _get_ingredient(db: AsyncSession, ingredient_id: str) -> Ingredient:
    ingredient = await db.get(Ingredient, ingredient_id)
    if ingredient is None:
        raise UnknownIngredient(ingredient_id)
    return ingredient


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=IngredientOut, status_code=status.HTTP_201_CREATED)
async def create_ingredient(
    body: IngredientCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Add an ingredient with zero stock and no cost yet.

    Stock only ever arrives through ledger events, so there is no
    opening-balance field here; post an adjustment instead.
    """
    existing = await db.scalar(
        select(Ingredient.id).where(func.lower(Ingredient.name) == body.name.strip().lower())
    )
    if existing:
        raise BusinessLogicError(
            f"Ingredient already exists: {body.name}", error_code="DUPLICATE_RECORD",
        )

    ingredient = Ingredient(**body.model_dump())
    ingredient.name = body.name.strip()
    db.add(ingredient)
    await db.flush()

    await log_activity(
        db, actor,
        action="created",
        entity_type="ingredient",
        entity_id=ingredient.id,
        entity_code=ingredient.name,
        summary=f"Created ingredient {ingredient.name} ({ingredient.unit})",
    )
    return ingredient


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[IngredientOut])
async def list_ingredients(
    include_inactive: bool = Query(False),
    search: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    base_stmt = select(Ingredient)
    if not include_inactive:
        base_stmt = base_stmt.where(Ingredient.is_active == True)  # noqa: E712
    if search:
        base_stmt = base_stmt.where(Ingredient.name.ilike(f"%{search}%"))

    count_stmt = select(func.count()).select_from(base_stmt.subquery())
    total = await db.scalar(count_stmt) or 0

    result = await db.execute(
        base_stmt.order_by(Ingredient.name).limit(limit).offset(offset)
    )
    return PaginatedResponse(
        items=[IngredientOut.model_validate(i) for i in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/low-stock", response_model=list[LowStockOut])
async def low_stock(
    service: InventoryService = Depends(get_inventory_service),
):
    items = await service.low_stock_list()
    return [LowStockOut.model_validate(item) for item in items]


# ── Single ingredient ────────────────────────────────────────

@router.get("/{ingredient_id}", response_model=IngredientOut)
async def get_ingredient(
    ingredient_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await _get_ingredient(db, ingredient_id)


@router.get("/{ingredient_id}/stock", response_model=StockOut)
async def get_stock(
    ingredient_id: str,
    service: InventoryService = Depends(get_inventory_service),
):
    stock = await service.current_stock(ingredient_id)
    ingredient = await _get_ingredient(service.db, ingredient_id)
    return StockOut(
        ingredient_id=ingredient.id,
        name=ingredient.name,
        unit=ingredient.unit,
        current_stock=stock,
    )


@router.get("/{ingredient_id}/cost-analysis", response_model=PriceAnalysisOut)
async def cost_analysis(
    ingredient_id: str,
    db: AsyncSession = Depends(get_db),
):
    ingredient = await _get_ingredient(db, ingredient_id)
    analysis = await purchase_price_analysis(db, ingredient)
    return PriceAnalysisOut.model_validate(analysis)


@router.post("/{ingredient_id}/deactivate", response_model=IngredientOut)
async def deactivate_ingredient(
    ingredient_id: str,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Hide an ingredient from new events.  Its ledger history stays."""
    ingredient = await _get_ingredient(db, ingredient_id)
    if not ingredient.is_active:
        raise BusinessLogicError(f"Ingredient {ingredient.name} is already inactive")

    ingredient.is_active = False
    await log_activity(
        db, actor,
        action="deactivated",
        entity_type="ingredient",
        entity_id=ingredient.id,
        entity_code=ingredient.name,
        summary=f"Deactivated with {ingredient.current_stock} {ingredient.unit} on hand",
    )
    await db.flush()
    await db.refresh(ingredient)
    return ingredient
