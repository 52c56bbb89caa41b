"""Aggregate model imports for Alembic auto-detection."""

# Catalog
from kitchenledger.models.ingredient import Ingredient  # noqa: F401
from kitchenledger.models.menu import Menu, RecipeLine  # noqa: F401

# Ledger and business events
from kitchenledger.models.ledger import LedgerEntry  # noqa: F401
from kitchenledger.models.events import Purchase, Sale, StockAdjustment, WasteRecord  # noqa: F401
from kitchenledger.models.lot import Lot  # noqa: F401

# Costing
from kitchenledger.models.batch import Batch, BatchCostLine  # noqa: F401
from kitchenledger.models.cogs import CogsRecord  # noqa: F401

# Audit
from kitchenledger.models.activity_log import ActivityLog  # noqa: F401
