from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import EntryPass, Event
from ..core.clock import from_client
from ..app_logger import get_logger

log = get_logger("events")


class EventNotFound(LookupError):
    pass


class EventInUse(ValueError):
    pass


async def list_events(db: AsyncSession) -> list[Event]:
    rows = (await db.execute(select(Event).order_by(Event.start_date.desc()))).scalars().all()
    return list(rows)


async def get_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    e = (await db.execute(select(Event).where(Event.id == event_id))).scalar_one_or_none()
    if not e:
        raise EventNotFound("Event not found")
    return e


async def create_event(
    db: AsyncSession,
    *,
    name: str,
    description: str | None,
    venue: str | None,
    start_date: datetime,
    end_date: datetime,
    created_by: uuid.UUID,
) -> Event:
    e = Event(
        name=name,
        description=description,
        venue=venue,
        start_date=from_client(start_date),
        end_date=from_client(end_date),
        created_by=created_by,
    )
    db.add(e)
    await db.commit()
    await db.refresh(e)
    log.info("event %s (%s) created", e.id, e.name)
    return e


async def update_event(
    db: AsyncSession,
    event_id: uuid.UUID,
    *,
    name: str,
    description: str | None,
    venue: str | None,
    start_date: datetime,
    end_date: datetime,
) -> Event:
    e = await get_event(db, event_id)
    e.name = name
    e.description = description
    e.venue = venue
    e.start_date = from_client(start_date)
    e.end_date = from_client(end_date)
    await db.commit()
    await db.refresh(e)
    return e


async def delete_event(db: AsyncSession, event_id: uuid.UUID) -> None:
    # soft-deleted passes still count: they are kept for audit
    count = (await db.execute(
        select(func.count()).select_from(EntryPass).where(EntryPass.event_id == event_id)
    )).scalar_one()
    if count > 0:
        raise EventInUse("Cannot delete event that has associated entry passes")

    res = await db.execute(delete(Event).where(Event.id == event_id).execution_options(synchronize_session=False))
    await db.commit()
    if not res.rowcount:
        raise EventNotFound("Event not found")
    log.info("event %s deleted", event_id)
