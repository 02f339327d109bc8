from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import EntryPass, Event, PassStatus

RECENT_VISITORS_LIMIT = 10


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one()


async def build_report(db: AsyncSession) -> dict:
    visitor_entries = await _count(db, select(func.count()).select_from(EntryPass).where(
        EntryPass.status.in_([PassStatus.ACTIVE.value, PassStatus.USED.value]),
        EntryPass.deleted_at.is_(None),
    ))
    passes_generated = await _count(db, select(func.count()).select_from(EntryPass))
    events_count = await _count(db, select(func.count()).select_from(Event))

    recent = (await db.execute(
        select(EntryPass.visitor_name, EntryPass.visit_type, EntryPass.valid_from, EntryPass.valid_until)
        .where(EntryPass.deleted_at.is_(None))
        .order_by(EntryPass.valid_from.desc())
        .limit(RECENT_VISITORS_LIMIT)
    )).mappings().all()

    return {
        "visitor_entries": visitor_entries,
        "passes_generated": passes_generated,
        "events_count": events_count,
        "recent_visitors": [dict(r) for r in recent],
    }
