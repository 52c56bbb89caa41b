"""ActivityLog — immutable audit trail for catalog and maintenance actions.

Stock movements are already audited by the ledger itself; this table
records the actions around it: recipe edits, price changes, deactivations,
ledger corrections, stock repairs and cost recalculations.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from kitchenledger.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Who ────────────────────────────────────────────────────
    actor: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # ── What ───────────────────────────────────────────────────
    # created | updated | deactivated | recipe_changed | price_changed |
    # corrected | stock_repaired | costs_recalculated | recalled
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Target ─────────────────────────────────────────────────
    # ingredient | menu | ledger_entry | lot | batch
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    entity_code: Mapped[str | None] = mapped_column(String(100))

    # ── Context ────────────────────────────────────────────────
    summary: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
