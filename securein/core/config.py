# securein/core/config.py
from __future__ import annotations
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import cached_property
from pathlib import Path
from typing import Optional
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


class Settings(BaseSettings):
    # DB
    database_url: str = Field(..., alias="DATABASE_URL")

    # Tokens
    access_token_exp_minutes: int = Field(default=60 * 24, alias="ACCESS_TOKEN_EXP_MINUTES")  # 1 day
    token_issuer: str = Field("securein-pass-svc", alias="TOKEN_ISSUER")

    # JWT (either supply paths OR inline PEM strings; if neither is supplied, we auto-generate)
    jwt_private_key_path: Optional[str] = Field(default=None)
    jwt_public_key_path: Optional[str] = Field(default=None)
    jwt_private_key_inline: Optional[str] = Field(default=None, alias="JWT_PRIVATE_KEY")
    jwt_public_key_inline: Optional[str] = Field(default=None, alias="JWT_PUBLIC_KEY")

    # Passes
    verify_base_url: str = Field("http://localhost:5173", alias="VERIFY_BASE_URL")
    local_timezone: str = Field("Asia/Kolkata", alias="LOCAL_TIMEZONE")
    recent_expiry_hours: int = Field(default=24, alias="RECENT_EXPIRY_HOURS")
    pass_id_attempts: int = Field(default=5, alias="PASS_ID_ATTEMPTS")

    # Bootstrap admin (created on startup when both are set)
    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")
    admin_password: str | None = Field(default=None, alias="ADMIN_PASSWORD")
    admin_name: str = Field("Admin", alias="ADMIN_NAME")

    # Redis (rate limit on the public verify endpoint)
    redis_url: str = Field("redis://127.0.0.1:6379/0", alias="REDIS_URL")
    rl_enabled: bool = Field(default=True, alias="RL_ENABLED")
    rl_window_seconds: int = Field(default=60, alias="RL_WINDOW_SECONDS")
    rl_max_reqs: int = Field(default=60, alias="RL_MAX_REQS")

    # NATS
    nats_enabled: bool = Field(default=True, alias="NATS_ENABLED")
    nats_urls: str = Field("nats://127.0.0.1:4222", alias="NATS_URLS")
    nats_subject_passes: str = Field("passes.events", alias="NATS_SUBJECT_PASSES")

    cors_origins: str = Field(
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
        alias="CORS_ORIGINS",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_prefix = ""
        case_sensitive = False

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # --- Load or generate keys ---
    @cached_property
    def jwt_private_key(self) -> str:
        pem = self._load_pem_from_any(source_path=self.jwt_private_key_path,
                                      inline=self.jwt_private_key_inline)
        if pem:
            return pem
        # generate ephemeral pair
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")

    @cached_property
    def jwt_public_key(self) -> str:
        pem = self._load_pem_from_any(source_path=self.jwt_public_key_path,
                                      inline=self.jwt_public_key_inline)
        if pem:
            return pem
        # derive from the private key we generated/loaded
        from cryptography.hazmat.primitives.serialization import load_pem_private_key
        private_key = load_pem_private_key(self.jwt_private_key.encode("utf-8"), password=None)
        return private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("utf-8")

    @staticmethod
    def _load_pem_from_any(*, source_path: Optional[str], inline: Optional[str]) -> Optional[str]:
        if inline and "BEGIN" in inline:
            return inline
        if source_path:
            p = Path(source_path)
            if p.exists():
                return p.read_text(encoding="utf-8")
        return None


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
