from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_db, get_current_user, require_admin
from ..models import User, UserRole
from ..schemas import LoginRequest, LoginResponse, RegisterRequest, UserRead, UserEnvelope, MessageResponse
from ..services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_read(user: User) -> UserRead:
    return UserRead(id=user.id, name=user.name, email=user.email, role=user.role.value)


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    try:
        user, token, expires_in = await auth_service.login(db, email=payload.email, password=payload.password)
    except PermissionError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return LoginResponse(token=token, expires_in=expires_in, user=_user_read(user))


@router.get("/verify", response_model=UserEnvelope)
async def verify(user: User = Depends(get_current_user)):
    return UserEnvelope(user=_user_read(user))


@router.post("/register", response_model=MessageResponse, status_code=201)
async def register(payload: RegisterRequest, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        await auth_service.create_user(
            db,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=UserRole(payload.role),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return MessageResponse(message="User registered successfully")
