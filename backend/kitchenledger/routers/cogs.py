"""COGS router — cost of goods sold per sale and per period.

Endpoints:
    GET  /api/cogs/sales/{sale_id}           COGS of one sale
    GET  /api/cogs/period?start=&end=        Totals with per-menu breakdown
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from kitchenledger.deps import get_inventory_service
from kitchenledger.schemas.cogs import CogsOut, CogsPeriodOut
from kitchenledger.services.inventory import InventoryService

router = APIRouter()


@router.get("/sales/{sale_id}", response_model=CogsOut)
async def sale_cogs(
    sale_id: int,
    service: InventoryService = Depends(get_inventory_service),
):
    record = await service.cogs_for_sale(sale_id)
    return CogsOut.model_validate(record)


@router.get("/period", response_model=CogsPeriodOut)
async def period_cogs(
    start: date = Query(...),
    end: date = Query(...),
    service: InventoryService = Depends(get_inventory_service),
):
    period = await service.cogs_for_period(start, end)
    return CogsPeriodOut.model_validate(period)
