"""
Human-readable order and sale numbers: ``<PREFIX>-<YYYYMMDD>-<NNNN>``.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def next_number(db: AsyncSession, column, prefix: str, now: datetime) -> str:
    """
    Next free number for the UTC day of ``now``.

    The sequence restarts every day. Uniqueness is backed by a unique index
    on ``column``; a concurrent writer that takes the same number fails on
    insert and the caller generates a new one.
    """
    day_prefix = f"{prefix}-{now:%Y%m%d}-"
    result = await db.execute(
        select(func.max(column)).where(column.like(f"{day_prefix}%"))
    )
    latest = result.scalar_one_or_none()
    sequence = int(latest[len(day_prefix):]) + 1 if latest else 1
    return f"{day_prefix}{sequence:04d}"
