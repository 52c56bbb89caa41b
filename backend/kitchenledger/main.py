from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kitchenledger import __version__
from kitchenledger.config import settings
from kitchenledger.middleware.exceptions import register_exception_handlers
from kitchenledger.routers import batches, cogs, health, ingredients, inventory, lots, menus
from kitchenledger.services.scheduler import lifespan

app = FastAPI(
    title="KitchenLedger",
    description="Restaurant inventory ledger and cost accounting",
    version=__version__,
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)

# Catalog
app.include_router(ingredients.router, prefix="/api/ingredients", tags=["ingredients"])
app.include_router(menus.router, prefix="/api/menus", tags=["menus"])

# Stock events and the ledger
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
app.include_router(lots.router, prefix="/api/lots", tags=["lots"])

# Costing
app.include_router(batches.router, prefix="/api/batches", tags=["batches"])
app.include_router(cogs.router, prefix="/api/cogs", tags=["cogs"])
