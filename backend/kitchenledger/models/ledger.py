"""LedgerEntry — the append-only stock transaction log.

Every change to an ingredient's quantity-on-hand is recorded here as a
signed `quantity_change`, tagged with its purpose (purchase | sale |
adjustment | waste) and the business event that caused it.  Entries are
never updated or deleted; a mistake is fixed by appending a compensating
entry whose `corrects_entry_id` points at the original.

The integer primary key is the store's commit order.  Folding an
ingredient's entries in `id` order reproduces `Ingredient.current_stock`.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenledger.database import Base

TRANSACTION_TYPES = ("purchase", "sale", "adjustment", "waste")


class LedgerEntry(Base):
    __tablename__ = "stock_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id"), nullable=False, index=True
    )

    # purchase | sale | adjustment | waste
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    quantity_change: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)

    # ── Originating event ────────────────────────────────────
    # purchase | sale | adjustment | waste | correction
    reference_type: Mapped[str | None] = mapped_column(String(30))
    reference_id: Mapped[str | None] = mapped_column(String(36), index=True)

    # ── Corrections ──────────────────────────────────────────
    reason: Mapped[str | None] = mapped_column(Text)
    corrects_entry_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("stock_transactions.id"), index=True
    )

    # ── Metadata ─────────────────────────────────────────────
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    ingredient = relationship("Ingredient")
