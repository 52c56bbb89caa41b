"""Batch and BatchCostLine — production runs of a menu item.

A Batch accumulates typed cost lines (ingredient, packaging, labor,
overhead, other).  `total_cost` is the sum of its lines and
`cost_per_unit` is `total_cost / quantity`; both are rewritten whenever a
line changes.  A zero-quantity batch keeps `cost_per_unit` NULL.

Lifecycle:  active → completed | expired | cancelled
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenledger.database import Base

COST_TYPES = ("ingredient", "packaging", "labor", "overhead", "other")


class Batch(Base):
    __tablename__ = "batches"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    menu_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("menus.id"), index=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    production_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    expiry_date: Mapped[date | None] = mapped_column(Date)

    # ── Derived ──────────────────────────────────────────────
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    cost_per_unit: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))

    # active | completed | expired | cancelled
    status: Mapped[str] = mapped_column(String(20), default="active")
    notes: Mapped[str | None] = mapped_column(Text)
    produced_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    menu = relationship("Menu")
    cost_lines = relationship(
        "BatchCostLine", back_populates="batch", cascade="all, delete-orphan",
        order_by="BatchCostLine.created_at",
    )


class BatchCostLine(Base):
    __tablename__ = "batch_cost_lines"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ingredient | packaging | labor | overhead | other
    cost_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[str | None] = mapped_column(String(36))
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(30))
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    batch = relationship("Batch", back_populates="cost_lines")
