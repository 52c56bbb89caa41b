"""Menu router — menu catalog, recipes and menu cost.

Endpoints:
    POST   /api/menus/                                 Create menu
    GET    /api/menus/                                 List menus
    GET    /api/menus/{menu_id}                        Menu with recipe lines
    PATCH  /api/menus/{menu_id}/price                  Change price (recomputes margin)
    PUT    /api/menus/{menu_id}/recipe/{ingredient_id} Set a recipe line
    DELETE /api/menus/{menu_id}/recipe/{ingredient_id} Remove a recipe line
    GET    /api/menus/{menu_id}/cost                   Live menu cost
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kitchenledger.database import get_db
from kitchenledger.deps import get_actor, get_inventory_service
from kitchenledger.middleware.exceptions import BusinessLogicError
from kitchenledger.models.menu import Menu
from kitchenledger.schemas.common import PaginatedResponse
from kitchenledger.schemas.menu import (
    MenuCostOut,
    MenuCreate,
    MenuOut,
    MenuPriceUpdate,
    RecipeLineSet,
)
from kitchenledger.services.inventory import InventoryService
from kitchenledger.services.recipe_cost import (
    get_menu,
    remove_recipe_line,
    set_menu_price,
    set_recipe_line,
)
from kitchenledger.utils.activity import log_activity

router = APIRouter()


# ── Create ───────────────────────────────────────────────────

@router.post("/", response_model=MenuOut, status_code=status.HTTP_201_CREATED)
async def create_menu(
    body: MenuCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    """Create a menu with an empty recipe.  Cost fills in as lines are added."""
    code = body.menu_code.strip().upper()
    existing = await db.scalar(select(Menu.id).where(Menu.menu_code == code))
    if existing:
        raise BusinessLogicError(
            f"Menu code already exists: {code}", error_code="DUPLICATE_RECORD",
        )

    menu = Menu(
        menu_code=code,
        name=body.name.strip(),
        description=body.description,
        price=body.price,
        recipe_lines=[],
    )
    db.add(menu)
    await db.flush()

    await log_activity(
        db, actor,
        action="created",
        entity_type="menu",
        entity_id=menu.id,
        entity_code=menu.menu_code,
        summary=f"Created menu {menu.menu_code} {menu.name} at {menu.price}",
    )
    return await get_menu(db, menu.id)


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[MenuOut])
async def list_menus(
    include_inactive: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    base_stmt = select(Menu)
    if not include_inactive:
        base_stmt = base_stmt.where(Menu.is_active == True)  # noqa: E712

    count_stmt = select(func.count()).select_from(base_stmt.subquery())
    total = await db.scalar(count_stmt) or 0

    result = await db.execute(
        base_stmt
        .options(selectinload(Menu.recipe_lines))
        .order_by(Menu.menu_code)
        .limit(limit)
        .offset(offset)
    )
    return PaginatedResponse(
        items=[MenuOut.model_validate(m) for m in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


# ── Single menu ──────────────────────────────────────────────

@router.get("/{menu_id}", response_model=MenuOut)
async def get_menu_detail(
    menu_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await get_menu(db, menu_id)


@router.patch("/{menu_id}/price", response_model=MenuOut)
async def update_price(
    menu_id: str,
    body: MenuPriceUpdate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    menu = await set_menu_price(db, menu_id, body.price, actor)
    return await get_menu(db, menu.id)


# ── Recipe lines ─────────────────────────────────────────────

@router.put("/{menu_id}/recipe/{ingredient_id}", response_model=MenuOut)
async def put_recipe_line(
    menu_id: str,
    ingredient_id: str,
    body: RecipeLineSet,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    await set_recipe_line(
        db, menu_id, ingredient_id, body.quantity_per_serve, actor,
        unit=body.unit,
        is_optional=body.is_optional,
        notes=body.notes,
    )
    return await get_menu(db, menu_id)


@router.delete("/{menu_id}/recipe/{ingredient_id}", response_model=MenuOut)
async def delete_recipe_line(
    menu_id: str,
    ingredient_id: str,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
):
    await remove_recipe_line(db, menu_id, ingredient_id, actor)
    return await get_menu(db, menu_id)


# ── Cost ─────────────────────────────────────────────────────

@router.get("/{menu_id}/cost", response_model=MenuCostOut)
async def menu_cost(
    menu_id: str,
    service: InventoryService = Depends(get_inventory_service),
):
    """Price the menu from current ingredient costs.

    Responds 409 COST_UNAVAILABLE when an ingredient has no cost data.
    """
    menu = await get_menu(service.db, menu_id)
    cost = await service.menu_cost(menu_id)
    return MenuCostOut(
        menu_id=menu.id,
        menu_code=menu.menu_code,
        price=menu.price,
        cost=cost.cost,
        profit=cost.profit,
        margin=cost.margin,
        needs_review=cost.needs_review,
    )
