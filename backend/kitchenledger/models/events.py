"""Business events that originate ledger entries.

Each row here is the "why" behind one or more LedgerEntry rows: the ledger
entry's `reference_type` / `reference_id` point back at it.  These tables
are written once by the recording operations and never edited afterwards.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenledger.database import Base


class Purchase(Base):
    """A receipt of ingredient stock from a vendor."""
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id"), nullable=False, index=True
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    # NULL when the receipt carried no price (e.g. a donated sample)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    vendor: Mapped[str] = mapped_column(String(200), nullable=False)
    vendor_invoice: Mapped[str | None] = mapped_column(String(100))
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today, index=True)

    notes: Mapped[str | None] = mapped_column(Text)
    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    ingredient = relationship("Ingredient")
    lots = relationship("Lot", back_populates="purchase")


class Sale(Base):
    """Units of a menu item sold."""
    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    menu_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("menus.id"), nullable=False, index=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today, index=True)

    notes: Mapped[str | None] = mapped_column(Text)
    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    menu = relationship("Menu")
    cogs = relationship("CogsRecord", back_populates="sale", uselist=False)


class StockAdjustment(Base):
    """A manual stock count correction: stock is set to `new_stock`."""
    __tablename__ = "stock_adjustments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id"), nullable=False, index=True
    )

    previous_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    new_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    quantity_change: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class WasteRecord(Base):
    """Ingredient stock discarded (spoiled, expired, dropped, ...)."""
    __tablename__ = "waste"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id"), nullable=False, index=True
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    # spoiled | expired | preparation | damaged | other
    waste_type: Mapped[str] = mapped_column(String(30), nullable=False, default="other")
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    # NULL when the ingredient had no cost data at the time
    estimated_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    waste_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)

    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
