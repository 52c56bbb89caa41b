"""FastAPI dependencies shared by the routers.

Dependencies:
  get_actor              → who is recording the event (X-Actor header)
  get_costing_policy     → the deployment's CostingPolicy
  get_inventory_service  → InventoryService bound to the request session
"""

from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.config import settings
from kitchenledger.database import get_db
from kitchenledger.services.costing import CostingPolicy, get_policy
from kitchenledger.services.inventory import InventoryService


def get_actor(x_actor: str | None = Header(None)) -> str:
    """Free-text actor name; identity is managed outside this service."""
    return (x_actor or "").strip() or "system"


@lru_cache
def get_costing_policy() -> CostingPolicy:
    return get_policy(settings.costing_policy, settings.cost_window_days)


async def get_inventory_service(
    db: AsyncSession = Depends(get_db),
    policy: CostingPolicy = Depends(get_costing_policy),
) -> InventoryService:
    return InventoryService(
        db, policy, allow_negative_stock=settings.allow_negative_stock,
    )
