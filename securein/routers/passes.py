from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_current_user, require_admin
from ..models import User, EntryPass
from ..schemas import (
    PassCreate, PassRead, PassEnvelope, PassValidationRead, PassValidationEnvelope,
    ScanResponse, MessageResponse,
)
from ..services import passes as svc
from ..services.events import EventNotFound
from ..core.clock import utcnow
from ..core.qr import render_png, verification_url
from ..core.redis import allow_request
from ..core.nats import publish_pass_event

router = APIRouter(prefix="/passes", tags=["passes"])

_NON_VISITOR_FIELDS = {"event_id", "valid_from", "valid_until"}


def _rejected(e: svc.PassRejected) -> HTTPException:
    detail = {"message": e.message, "status": e.status}
    if e.entry_status is not None:
        detail["entry_status"] = e.entry_status
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def _emit(kind: str, p: EntryPass, **extra):
    await publish_pass_event({
        "type": kind,
        "pass_id": p.pass_id,
        "event_id": str(p.event_id) if p.event_id else None,
        "at": utcnow().isoformat(),
        **extra,
    })


# --- 1) Issue a pass (QR rendered at creation)
@router.post("", response_model=PassEnvelope, status_code=201)
async def issue_pass(payload: PassCreate, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        p = await svc.issue_pass(
            db,
            visitor=payload.model_dump(exclude=_NON_VISITOR_FIELDS),
            valid_from=payload.valid_from,
            valid_until=payload.valid_until,
            event_id=payload.event_id,
            created_by=user.id,
        )
    except EventNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except svc.PassIdExhausted:
        raise HTTPException(status_code=500, detail="Server error")

    await _emit("pass.issued", p, created_by=str(user.id))
    return PassEnvelope(message="Entry pass created successfully", pass_=PassRead.model_validate(p))


# --- 2) Active list; sweeps overdue passes to expired first
@router.get("/active", response_model=list[PassRead])
async def active_passes(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = await svc.list_active(db)
    return [PassRead.model_validate(p) for p in rows]


# --- 3) Public read-only check (what the QR links to); may persist the expiry transition
@router.get("/verify/{pass_id}", response_model=PassValidationEnvelope)
async def verify_pass(pass_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    ip = request.client.host if request.client else "unknown"
    if not await allow_request(ip, "passes.verify"):
        raise HTTPException(status_code=429, detail="Too many requests")

    try:
        p, validity = await svc.verify_pass(db, pass_id)
    except svc.PassNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    body = PassRead.model_validate(p).model_dump()
    body.update(status=validity.status, validation_message=validity.message)
    return PassValidationEnvelope(pass_=PassValidationRead.model_validate(body))


# --- 4) Staff scan: entry first, exit second
@router.post("/{pass_id}/verify", response_model=ScanResponse)
async def scan_pass(pass_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        action, p = await svc.scan_pass(db, pass_id, operator_id=user.id)
    except svc.PassNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except svc.PassRejected as e:
        raise _rejected(e)
    except svc.ScanConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    await _emit(f"pass.{action}", p, operator_id=str(user.id))
    message = "Entry recorded successfully" if action == "entry" else "Exit recorded successfully"
    return ScanResponse(message=message, action=action, pass_=PassRead.model_validate(p))


# (Optional) PNG for printing at the gate
@router.get("/{pass_id}/qr.png")
async def pass_qr_png(pass_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        p = await svc.get_live_pass(db, pass_id)
    except svc.PassNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(content=render_png(verification_url(p.pass_id)), media_type="image/png")


# --- 5) Removal
@router.patch("/{pass_id}/soft-delete", response_model=MessageResponse)
async def soft_delete_pass(pass_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        await svc.soft_delete(db, pass_id)
    except svc.PassNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    await publish_pass_event({"type": "pass.deleted", "pass_id": svc.normalize_pass_id(pass_id),
                              "at": utcnow().isoformat(), "hard": False})
    return MessageResponse(message="Pass deleted successfully")


@router.delete("/{pass_id}", response_model=MessageResponse)
async def hard_delete_pass(pass_id: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        await svc.hard_delete(db, pass_id)
    except svc.PassNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    await publish_pass_event({"type": "pass.deleted", "pass_id": svc.normalize_pass_id(pass_id),
                              "at": utcnow().isoformat(), "hard": True})
    return MessageResponse(message="Pass deleted successfully")
