"""Ingredient — a raw material tracked by the ledger.

`current_stock` is a projection of the ledger (see services.projector) and
`cost_per_unit` is written only by the costing engine (services.costing).
Neither is edited directly by catalog management.

`cost_per_unit` is NULL until the first priced purchase: "no cost data" is
never represented as zero.  When a costing policy finds no usable data the
previous cost is kept and `cost_needs_review` is raised instead.

Ingredients referenced by history are soft-deactivated, never deleted.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenledger.database import Base


class Ingredient(Base):
    __tablename__ = "ingredients"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    unit: Mapped[str] = mapped_column(String(30), nullable=False, default="pieces")

    # ── Projection (ledger-owned) ────────────────────────────
    current_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))

    # ── Policy thresholds ────────────────────────────────────
    min_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"))
    max_stock: Mapped[Decimal | None] = mapped_column(Numeric(12, 3))
    reorder_point: Mapped[Decimal | None] = mapped_column(Numeric(12, 3))

    # ── Costing (costing-engine-owned) ───────────────────────
    cost_per_unit: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))
    cost_needs_review: Mapped[bool] = mapped_column(Boolean, default=False)
    cost_updated_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Sourcing ─────────────────────────────────────────────
    supplier: Mapped[str | None] = mapped_column(String(200))
    storage_location: Mapped[str | None] = mapped_column(String(200))

    # ── Metadata ─────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    recipe_lines = relationship("RecipeLine", back_populates="ingredient")
