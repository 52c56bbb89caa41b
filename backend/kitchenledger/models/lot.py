"""Lot — one receipt of an ingredient at a specific unit cost and expiry.

Lots are created by RecordPurchase when the FIFO costing policy is active.
Consumption (sales, waste) draws down `remaining_quantity` on the oldest
eligible lot first; `remaining_quantity` never increases.

Lifecycle:  active → depleted   (remaining reaches zero)
            active → recalled   (manual)
            active → expired    (reserved for disposal workflows; the
                                 expiry sweep only reports)
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenledger.database import Base

LOT_STATUSES = ("active", "expired", "depleted", "recalled")


class Lot(Base):
    __tablename__ = "lots"

    # Integer key doubles as insertion order for same-day FIFO tie-breaks
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lot_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)

    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id"), nullable=False, index=True
    )
    purchase_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("purchases.id"), index=True
    )

    # ── Quantities ───────────────────────────────────────────
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    remaining_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))

    # ── Dates ────────────────────────────────────────────────
    received_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today, index=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, index=True)

    # active | expired | depleted | recalled
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    ingredient = relationship("Ingredient")
    purchase = relationship("Purchase", back_populates="lots")
