from __future__ import annotations

import uuid
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_current_user
from ..models import User
from ..schemas import EventCreate, EventUpdate, EventRead, EventEnvelope, MessageResponse
from ..services import events as svc

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=list[EventRead])
async def list_events(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return [EventRead.model_validate(e) for e in await svc.list_events(db)]


@router.post("", response_model=EventEnvelope, status_code=201)
async def create_event(payload: EventCreate, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    e = await svc.create_event(
        db,
        name=payload.name,
        description=payload.description,
        venue=payload.venue,
        start_date=payload.start_date,
        end_date=payload.end_date,
        created_by=user.id,
    )
    return EventEnvelope(message="Event created successfully", event=EventRead.model_validate(e))


@router.put("/{event_id}", response_model=EventEnvelope)
async def update_event(
    event_id: uuid.UUID,
    payload: EventUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        e = await svc.update_event(
            db,
            event_id,
            name=payload.name,
            description=payload.description,
            venue=payload.venue,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except svc.EventNotFound as ex:
        raise HTTPException(status_code=404, detail=str(ex))
    return EventEnvelope(message="Event updated successfully", event=EventRead.model_validate(e))


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(event_id: uuid.UUID, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        await svc.delete_event(db, event_id)
    except svc.EventInUse as ex:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ex))
    except svc.EventNotFound as ex:
        raise HTTPException(status_code=404, detail=str(ex))
    return MessageResponse(message="Event deleted successfully")


@router.get("/{event_id}", response_model=EventRead)
async def get_event(event_id: uuid.UUID, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        e = await svc.get_event(db, event_id)
    except svc.EventNotFound as ex:
        raise HTTPException(status_code=404, detail=str(ex))
    return EventRead.model_validate(e)
