from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "scoutquest-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "ScoutQuest")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/scoutquest_dev")

    # Bearer tokens are minted by the identity service; we only verify them
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_alg: str = os.getenv("JWT_ALG", "HS256")
    access_ttl_min: int = int(os.getenv("ACCESS_TTL_MIN", "15"))

    # Shared secret for the reconciliation endpoints; empty disables them
    operator_token: str = os.getenv("OPERATOR_TOKEN", "")

    # Leaderboard reads may lag writes by at most this long
    leaderboard_cache_ttl_seconds: int = int(os.getenv("LEADERBOARD_CACHE_TTL_SECONDS", "30"))
    leaderboard_default_limit: int = int(os.getenv("LEADERBOARD_DEFAULT_LIMIT", "50"))

settings = Settings()
