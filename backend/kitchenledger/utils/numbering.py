"""Sequential human-readable codes for lots and production batches.

Format tokens:
  {date}       → YYYYMMDD of the business date passed in
  {seq:N}      → zero-padded sequence number, N digits, resets daily per prefix

Formats:
  lot:    LOT-{date}-{seq:3}
  batch:  BAT-{date}-{seq:3}
"""

import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenledger.models.batch import Batch
from kitchenledger.models.lot import Lot

FORMATS = {
    "lot": "LOT-{date}-{seq:3}",
    "batch": "BAT-{date}-{seq:3}",
}

# Map entity types to their code column for counting
ENTITY_COLUMN_MAP = {
    "lot": Lot.lot_number,
    "batch": Batch.batch_number,
}


def _build_prefix(fmt: str, date_str: str) -> str:
    """Everything before {seq:N}, used to count today's existing codes."""
    prefix = fmt.replace("{date}", date_str)
    return re.sub(r"\{seq:\d+\}.*$", "", prefix)


async def _count_existing(db: AsyncSession, entity: str, prefix: str) -> int:
    column = ENTITY_COLUMN_MAP[entity]
    result = await db.execute(
        select(func.count()).where(column.like(f"{prefix}%"))
    )
    return result.scalar() or 0


async def generate_code(
    db: AsyncSession,
    entity: str,
    on_date: date | None = None,
) -> str:
    """Generate the next sequential code for `entity`.

    Args:
        db: Database session
        entity: "lot" or "batch"
        on_date: Business date the code belongs to (defaults to today)

    Returns:
        Generated code string, e.g. "LOT-20261019-001"
    """
    fmt = FORMATS[entity]
    date_str = (on_date or date.today()).strftime("%Y%m%d")

    prefix = _build_prefix(fmt, date_str)
    count = await _count_existing(db, entity, prefix)

    seq_match = re.search(r"\{seq:(\d+)\}", fmt)
    seq_width = int(seq_match.group(1)) if seq_match else 3

    code = fmt.replace("{date}", date_str)
    return re.sub(r"\{seq:\d+\}", f"{count + 1:0{seq_width}d}", code)
