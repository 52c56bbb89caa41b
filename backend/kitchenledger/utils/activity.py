"""Lightweight helper for recording activity log entries.

Usage:
    await log_activity(
        db, actor, action="recipe_changed", entity_type="menu",
        entity_id=menu.id, entity_code=menu.menu_code,
        summary="Set shrimp to 7 units per serve",
    )

The row is added to the current session and committed with the
enclosing transaction — no extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.models.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    actor: str,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    entry = ActivityLog(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        summary=summary,
        details=details,
    )
    db.add(entry)
