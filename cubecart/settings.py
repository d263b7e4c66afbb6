# cubecart/settings.py
from __future__ import annotations
from typing import List, Optional
from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict
import json

def _parse_cors(v: Optional[str | List[str]]) -> List[str]:
    """
    Accept JSON array (e.g. '["http://localhost:3000"]') or
    comma-separated string ('http://localhost:3000,http://127.0.0.1:3000').
    """
    if v is None:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    if isinstance(v, list):
        return v
    s = v.strip()
    if not s:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    # try JSON first
    try:
        parsed = json.loads(s)
    except ValueError:
        parsed = None
    if isinstance(parsed, list) and all(isinstance(x, str) for x in parsed):
        return parsed
    # fallback: comma separated
    return [p.strip() for p in s.split(",") if p.strip()]

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",   # ignore unknown env keys instead of raising
    )

    # --- API ---
    api_host: str = Field(default="127.0.0.1", validation_alias=AliasChoices("API_HOST",))
    api_port: int = Field(default=8000,        validation_alias=AliasChoices("API_PORT",))
    cors_origins_raw: Optional[str | List[str]] = Field(
        default=None, validation_alias=AliasChoices("CORS_ORIGINS",)
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL",))
    log_format: str = Field(default="json", validation_alias=AliasChoices("LOG_FORMAT",))

    # --- Postgres ---
    database_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("DATABASE_URL",)
    )

    # --- Identity ---
    # accept either TOKEN_SECRET or the older JWT_SECRET name
    token_secret: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TOKEN_SECRET", "JWT_SECRET")
    )
    token_ttl_seconds: int = Field(
        default=7 * 24 * 3600, validation_alias=AliasChoices("TOKEN_TTL_SECONDS",)
    )
    token_issuer: str = Field(
        default="cubecart", validation_alias=AliasChoices("TOKEN_ISSUER",)
    )
    password_hash_rounds: int = Field(
        default=12, ge=4, le=31, validation_alias=AliasChoices("PASSWORD_HASH_ROUNDS",)
    )

    # --- Stripe ---
    stripe_secret_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("STRIPE_SECRET_KEY",)
    )
    payment_currency: str = Field(
        default="usd", validation_alias=AliasChoices("PAYMENT_CURRENCY",)
    )
    payment_provider_timeout_seconds: float = Field(
        default=15.0, gt=0, validation_alias=AliasChoices("PAYMENT_PROVIDER_TIMEOUT_SECONDS",)
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors(self.cors_origins_raw)

# singleton
settings = Settings()
