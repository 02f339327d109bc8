from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
import uuid

import jwt
from passlib.context import CryptContext

from .config import get_settings
settings = get_settings()

# Use bcrypt_sha256 to avoid bcrypt 72-byte issues
_pwd_context = CryptContext(schemes=["bcrypt_sha256"], deprecated="auto")

def hash_password(password: str) -> str:
    return _pwd_context.hash(password)

def verify_password(password: str, hashed: str) -> bool:
    return _pwd_context.verify(password, hashed)

def create_access_token(*, user_id: uuid.UUID, role: str, expires_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes or settings.access_token_exp_minutes)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iss": settings.token_issuer,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, settings.jwt_private_key, algorithm="RS256")

def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        settings.jwt_public_key,
        algorithms=["RS256"],
        issuer=settings.token_issuer,
        options={"verify_aud": False, "require": ["sub", "exp"]},
    )
