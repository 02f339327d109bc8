"""
Entry pass lifecycle.

A pass is issued ``active`` with no entry status, and then moves through two
independent axes:

* ``status``: ``active`` -> ``expired`` (opportunistically, on read, once the
  validity window has closed), or ``deleted`` on soft delete. ``cancelled`` and
  ``used`` are terminal and only ever reported back.
* ``entry_status``: ``None`` -> ``entered`` -> ``exited``. One cycle per pass.

Every scan write is a conditional UPDATE whose WHERE clause re-checks the
prior state; ``rowcount == 0`` means a concurrent writer got there first.
All timestamps are UTC.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Tuple

from sqlalchemy import and_, case, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import EntryPass, EntryStatus, Event, PassStatus
from ..core.clock import as_utc, from_client, utcnow
from ..core.qr import generate_pass_id, render_data_url, verification_url
from ..core.config import get_settings
from ..app_logger import get_logger
from .events import EventNotFound

settings = get_settings()
log = get_logger("passes")

ACTIVE = PassStatus.ACTIVE.value
EXPIRED = PassStatus.EXPIRED.value
USED = PassStatus.USED.value
CANCELLED = PassStatus.CANCELLED.value
DELETED = PassStatus.DELETED.value
PENDING = "pending"  # reported only, never stored

ENTERED = EntryStatus.ENTERED.value
EXITED = EntryStatus.EXITED.value

MSG_CANCELLED = "Pass has been cancelled"
MSG_EXPIRED = "Pass has expired"
MSG_INACTIVE = "Pass is no longer active"
MSG_PENDING = "Pass is not yet valid"
MSG_AWAITING_ENTRY = "Pass is valid - awaiting entry"
MSG_INSIDE = "Pass is valid - visitor is inside"
MSG_FULLY_USED = "Pass has been fully used"
MSG_ALREADY_USED = "Pass already fully used"
MSG_CONFLICT = "Pass was updated by a concurrent scan"


class PassNotFound(LookupError):
    pass


class PassRejected(ValueError):
    """An expected, recoverable state outcome (expired, pending, used...)."""

    def __init__(self, message: str, status: str, entry_status: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.entry_status = entry_status


class ScanConflict(RuntimeError):
    pass


class PassIdExhausted(RuntimeError):
    pass


@dataclass(frozen=True)
class Validity:
    status: str
    message: str


def normalize_pass_id(pass_id: str) -> str:
    return pass_id.strip().upper()


async def get_live_pass(db: AsyncSession, pass_id: str) -> EntryPass:
    p = (await db.execute(
        select(EntryPass).where(
            EntryPass.pass_id == normalize_pass_id(pass_id),
            EntryPass.deleted_at.is_(None),
        )
    )).scalar_one_or_none()
    if not p:
        raise PassNotFound("Pass not found")
    return p


# ---- issuance ----

def is_pass_id_collision(e: IntegrityError) -> bool:
    # Postgres names the constraint, SQLite names the column
    msg = str(e.orig)
    return "uq_entry_passes_pass_id" in msg or "entry_passes.pass_id" in msg


async def issue_pass(
    db: AsyncSession,
    *,
    visitor: dict[str, Any],
    valid_from: datetime,
    valid_until: datetime,
    created_by: uuid.UUID,
    event_id: uuid.UUID | None = None,
) -> EntryPass:
    if event_id is not None:
        found = (await db.execute(select(Event.id).where(Event.id == event_id))).scalar_one_or_none()
        if not found:
            raise EventNotFound("Event not found")

    valid_from = from_client(valid_from)
    valid_until = from_client(valid_until)

    for attempt in range(1, settings.pass_id_attempts + 1):
        pass_id = generate_pass_id()
        p = EntryPass(
            pass_id=pass_id,
            event_id=event_id,
            created_by=created_by,
            valid_from=valid_from,
            valid_until=valid_until,
            qr_code=render_data_url(verification_url(pass_id)),
            status=ACTIVE,
            entry_status=None,
            **visitor,
        )
        db.add(p)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if not is_pass_id_collision(e):
                raise
            log.warning("pass id %s already taken (attempt %d)", pass_id, attempt)
            continue
        await db.refresh(p)
        log.info("issued pass %s for %s valid %s..%s", p.pass_id, p.visitor_name,
                 valid_from.isoformat(), valid_until.isoformat())
        return p

    raise PassIdExhausted(f"no free pass id after {settings.pass_id_attempts} attempts")


# ---- validity ----

async def _mark_expired(db: AsyncSession, p: EntryPass) -> None:
    # read-then-write, not one transaction: a scan may land in between
    res = await db.execute(
        update(EntryPass)
        .where(EntryPass.id == p.id, EntryPass.status == p.status)
        .values(status=EXPIRED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if res.rowcount:
        log.info("pass %s expired (was %s)", p.pass_id, p.status)
    await db.refresh(p)


async def evaluate_validity(db: AsyncSession, p: EntryPass, *, now: datetime | None = None) -> Validity:
    now = now or utcnow()

    if p.status == CANCELLED:
        return Validity(CANCELLED, MSG_CANCELLED)

    if p.status == EXPIRED or (p.status in (ACTIVE, USED) and now > as_utc(p.valid_until)):
        if p.status != EXPIRED:
            await _mark_expired(db, p)
        return Validity(EXPIRED, MSG_EXPIRED)

    if p.status != ACTIVE:
        return Validity(p.status, MSG_INACTIVE)

    if now < as_utc(p.valid_from):
        return Validity(PENDING, MSG_PENDING)

    if p.entry_status == EXITED:
        return Validity(p.status, MSG_FULLY_USED)
    if p.entry_status == ENTERED:
        return Validity(p.status, MSG_INSIDE)
    return Validity(p.status, MSG_AWAITING_ENTRY)


async def verify_pass(db: AsyncSession, pass_id: str, *, now: datetime | None = None) -> Tuple[EntryPass, Validity]:
    p = await get_live_pass(db, pass_id)
    return p, await evaluate_validity(db, p, now=now)


# ---- scanning ----

async def record_entry(db: AsyncSession, p: EntryPass, now: datetime) -> bool:
    res = await db.execute(
        update(EntryPass)
        .where(
            EntryPass.id == p.id,
            EntryPass.entry_status.is_(None),
            EntryPass.status == ACTIVE,
            EntryPass.deleted_at.is_(None),
        )
        .values(entry_time=now, entry_status=ENTERED, exit_time=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(p)
    return res.rowcount == 1


async def record_exit(db: AsyncSession, p: EntryPass, now: datetime) -> bool:
    res = await db.execute(
        update(EntryPass)
        .where(
            EntryPass.id == p.id,
            EntryPass.entry_status == ENTERED,
            EntryPass.exit_time.is_(None),
            EntryPass.status == ACTIVE,
            EntryPass.deleted_at.is_(None),
        )
        .values(exit_time=now, entry_status=EXITED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(p)
    return res.rowcount == 1


async def scan_pass(
    db: AsyncSession,
    pass_id: str,
    *,
    operator_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> Tuple[str, EntryPass]:
    """Record the next movement for a pass: entry first, then exit, then nothing."""
    now = now or utcnow()
    p = await get_live_pass(db, pass_id)

    v = await evaluate_validity(db, p, now=now)
    if v.status != ACTIVE:
        raise PassRejected(v.message, v.status, p.entry_status)

    if p.entry_status == EXITED or (p.entry_status == ENTERED and p.exit_time is not None):
        raise PassRejected(MSG_ALREADY_USED, p.status, p.entry_status)

    if p.entry_status == ENTERED:
        action, ok = "exit", await record_exit(db, p, now)
    else:
        action, ok = "entry", await record_entry(db, p, now)

    if not ok:
        log.warning("lost %s race on pass %s", action, p.pass_id)
        raise ScanConflict(MSG_CONFLICT)

    log.info("%s recorded for pass %s by %s", action, p.pass_id, operator_id)
    return action, p


# ---- listing ----

async def expire_overdue(db: AsyncSession, *, now: datetime | None = None) -> int:
    now = now or utcnow()
    res = await db.execute(
        update(EntryPass)
        .where(
            EntryPass.status == ACTIVE,
            EntryPass.valid_until < now,
            EntryPass.deleted_at.is_(None),
        )
        .values(status=EXPIRED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount or 0


async def list_active(db: AsyncSession, *, now: datetime | None = None) -> list[EntryPass]:
    now = now or utcnow()
    swept = await expire_overdue(db, now=now)
    if swept:
        log.info("expiry sweep moved %d passes to expired", swept)

    cutoff = now - timedelta(hours=settings.recent_expiry_hours)
    urgency = case(
        (EntryPass.status == ACTIVE, 0),
        (EntryPass.status == USED, 1),
        else_=2,
    )
    rows = (await db.execute(
        select(EntryPass)
        .where(
            EntryPass.deleted_at.is_(None),
            or_(
                EntryPass.status.in_([ACTIVE, USED]),
                and_(EntryPass.status == EXPIRED, EntryPass.valid_until >= cutoff),
            ),
        )
        .order_by(urgency, EntryPass.valid_until.desc())
        .execution_options(populate_existing=True)
    )).scalars().all()
    return list(rows)


# ---- removal ----

async def soft_delete(db: AsyncSession, pass_id: str, *, now: datetime | None = None) -> None:
    res = await db.execute(
        update(EntryPass)
        .where(EntryPass.pass_id == normalize_pass_id(pass_id), EntryPass.deleted_at.is_(None))
        .values(status=DELETED, deleted_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if not res.rowcount:
        raise PassNotFound("Pass not found")
    log.info("pass %s soft-deleted", normalize_pass_id(pass_id))


async def hard_delete(db: AsyncSession, pass_id: str) -> None:
    res = await db.execute(
        delete(EntryPass)
        .where(EntryPass.pass_id == normalize_pass_id(pass_id))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if not res.rowcount:
        raise PassNotFound("Pass not found")
    log.info("pass %s permanently deleted", normalize_pass_id(pass_id))
