"""Ledger store — the append-only stock transaction log.

Every stock movement is one LedgerEntry.  Entries are never updated or
deleted; a mistake is fixed by appending a compensating entry that points
back at the original through `corrects_entry_id`.

Each append is flushed before the projector touches current_stock, so the
entry and its projection land in the same transaction and the entry id
(commit order) is known to whoever reads it next.
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.middleware.exceptions import (
    BusinessLogicError,
    InvalidQuantity,
    ResourceNotFoundError,
)
from kitchenledger.models.ledger import TRANSACTION_TYPES, LedgerEntry
from kitchenledger.services.projector import apply_entry, lock_ingredient
from kitchenledger.utils.activity import log_activity

logger = logging.getLogger(__name__)

CORRECTION_REFERENCE = "correction"


async def append_entry(
    db: AsyncSession,
    ingredient_id: str,
    *,
    transaction_type: str,
    quantity_change: Decimal,
    unit: str,
    created_by: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
    reason: str | None = None,
    corrects_entry_id: int | None = None,
) -> LedgerEntry:
    """Append one entry and project it onto the ingredient's stock.

    Raises:
        InvalidQuantity: quantity_change is zero or unit is empty.
        UnknownIngredient: ingredient_id is missing or deactivated.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise BusinessLogicError(f"Unknown transaction type: {transaction_type}")
    if quantity_change is None or Decimal(quantity_change) == 0:
        raise InvalidQuantity("Ledger entry quantity must be non-zero")
    if not unit or not unit.strip():
        raise InvalidQuantity("Ledger entry unit must not be empty")

    ingredient = await lock_ingredient(db, ingredient_id)

    entry = LedgerEntry(
        ingredient_id=ingredient.id,
        transaction_type=transaction_type,
        quantity_change=Decimal(quantity_change),
        unit=unit.strip(),
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason,
        corrects_entry_id=corrects_entry_id,
        created_by=created_by,
    )
    db.add(entry)
    await db.flush()  # populate entry.id before projecting

    stock = apply_entry(ingredient, entry)
    logger.debug(
        "Ledger #%s %s %s %s -> stock %s",
        entry.id, transaction_type, ingredient.name, entry.quantity_change, stock,
    )
    return entry


async def get_entry(db: AsyncSession, entry_id: int) -> LedgerEntry:
    entry = (
        await db.execute(select(LedgerEntry).where(LedgerEntry.id == entry_id))
    ).scalar_one_or_none()
    if entry is None:
        raise ResourceNotFoundError("Ledger entry", str(entry_id))
    return entry


async def post_correction(
    db: AsyncSession,
    entry_id: int,
    reason: str,
    actor: str,
) -> LedgerEntry:
    """Append the opposite-sign twin of an entry.

    The compensating entry is an adjustment referencing the original id.
    A correction cannot itself be corrected, and an entry can be corrected
    only once.
    """
    if not reason or not reason.strip():
        raise BusinessLogicError("A correction requires a reason")

    original = await get_entry(db, entry_id)
    if original.corrects_entry_id is not None:
        raise BusinessLogicError(
            f"Ledger entry {entry_id} is itself a correction and cannot be corrected"
        )

    existing = (
        await db.execute(
            select(LedgerEntry.id).where(LedgerEntry.corrects_entry_id == entry_id)
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise BusinessLogicError(
            f"Ledger entry {entry_id} was already corrected by entry {existing}",
            details={"correction_entry_id": existing},
        )

    correction = await append_entry(
        db,
        original.ingredient_id,
        transaction_type="adjustment",
        quantity_change=-original.quantity_change,
        unit=original.unit,
        created_by=actor,
        reference_type=CORRECTION_REFERENCE,
        reference_id=str(original.id),
        reason=reason.strip(),
        corrects_entry_id=original.id,
    )

    await log_activity(
        db, actor,
        action="ledger_corrected",
        entity_type="ledger_entry",
        entity_id=str(original.id),
        summary=f"Reversed {original.transaction_type} of {original.quantity_change} {original.unit}",
        details={
            "correction_entry_id": correction.id,
            "reason": correction.reason,
        },
    )
    logger.info(
        "Ledger entry #%s corrected by #%s (%s)", original.id, correction.id, reason,
    )
    return correction
