from __future__ import annotations

from typing import Tuple
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import User, UserRole
from ..core.security import hash_password, verify_password, create_access_token
from ..core.config import get_settings
from ..app_logger import get_logger

settings = get_settings()
log = get_logger("auth")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def create_user(db: AsyncSession, *, name: str, email: str, password: str, role: UserRole) -> User:
    email = _normalize_email(email)
    exists = (await db.execute(select(User.id).where(User.email == email))).scalar_one_or_none()
    if exists:
        raise ValueError("User already exists")

    user = User(
        id=uuid.uuid4(),
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    log.info("user %s registered with role %s", user.email, role.value)
    return user


async def login(db: AsyncSession, *, email: str, password: str) -> Tuple[User, str, int]:
    email = _normalize_email(email)
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        log.info("failed login for %s", email)
        raise PermissionError("Invalid credentials")

    token = create_access_token(user_id=user.id, role=user.role.value)
    log.info("login for %s", user.email)
    return user, token, settings.access_token_exp_minutes * 60


async def ensure_admin(db: AsyncSession) -> User | None:
    """Create the bootstrap admin from ADMIN_EMAIL/ADMIN_PASSWORD if it does not exist yet."""
    if not settings.admin_email or not settings.admin_password:
        return None
    email = _normalize_email(settings.admin_email)
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user:
        log.info("admin user already exists")
        return user
    user = await create_user(
        db, name=settings.admin_name, email=email, password=settings.admin_password, role=UserRole.ADMIN
    )
    log.info("admin user created")
    return user
