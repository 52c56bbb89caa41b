"""Menu and RecipeLine.

A Menu's `price` is set externally; `cost_price`, `profit` and
`profit_margin` are derived by the recipe cost calculator and rewritten
whenever a recipe line, the price, or a referenced ingredient cost changes.
NULL derived fields mean the cost is currently unavailable.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenledger.database import Base


class Menu(Base):
    __tablename__ = "menus"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Short code printed on the POS, e.g. "A1"
    menu_code: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # ── Derived ──────────────────────────────────────────────
    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))
    profit: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))
    # profit / price as a ratio, 0 when price is 0
    profit_margin: Mapped[Decimal | None] = mapped_column(Numeric(8, 4))
    cost_updated_at: Mapped[datetime | None] = mapped_column(DateTime)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    recipe_lines = relationship(
        "RecipeLine", back_populates="menu", cascade="all, delete-orphan",
    )


class RecipeLine(Base):
    __tablename__ = "menu_recipes"
    __table_args__ = (UniqueConstraint("menu_id", "ingredient_id"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    menu_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("menus.id"), nullable=False, index=True
    )
    ingredient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ingredients.id"), nullable=False, index=True
    )

    quantity_per_serve: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    is_optional: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    menu = relationship("Menu", back_populates="recipe_lines")
    ingredient = relationship("Ingredient", back_populates="recipe_lines")
