"""
Application configuration, read from the environment (and a local .env file).
"""
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _split_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Settings:
    """Process settings for the storefront API."""

    jwt_secret: Optional[str] = None
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "storefront"
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 365
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            jwt_secret=os.getenv("JWT_SECRET") or None,
            mongodb_url=os.getenv("MONGODB_URL", cls.mongodb_url),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            token_ttl_days=int(os.getenv("TOKEN_TTL_DAYS", cls.token_ttl_days)),
            port=int(os.getenv("PORT", cls.port)),
            cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "*")),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )

    def require_secret(self) -> str:
        # Tokens must never be signed with a built-in fallback key
        if not self.jwt_secret:
            raise RuntimeError("JWT_SECRET must be set to sign auth tokens")
        return self.jwt_secret


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
