from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_current_user
from ..models import User
from ..schemas import ReportRead
from ..services.reports import build_report

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", response_model=ReportRead)
async def report(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return ReportRead.model_validate(await build_report(db))
