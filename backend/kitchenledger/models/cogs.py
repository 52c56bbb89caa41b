"""CogsRecord — cost of goods sold attributed to one sale.

Purely derived: written once when the sale posts, from components supplied
by the costing and recipe calculators.  `total_cogs` is always the sum of
the four components, and NULL with `ingredient_cost` when some ingredient
had no cost data when the sale posted.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenledger.database import Base


class CogsRecord(Base):
    __tablename__ = "cogs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    sale_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sales.id"), unique=True, nullable=False
    )
    menu_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("menus.id"), nullable=False, index=True
    )
    sale_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)

    # NULL when some recipe ingredient had no cost data at sale time
    ingredient_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    packaging_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    labor_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    overhead_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_cogs: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    sale = relationship("Sale", back_populates="cogs")
    menu = relationship("Menu")
