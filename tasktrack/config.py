"""Configuration for the task tracking API, read from the environment."""
from dataclasses import dataclass, field
import os
from typing import List

from dotenv import load_dotenv

# Load environment variables from a local .env when present
load_dotenv()

STORE_BACKENDS = ("sql", "memory")
MIN_SECRET_LENGTH = 32


@dataclass(frozen=True)
class Settings:
    jwt_secret_key: str
    jwt_issuer: str = "tasktrack-api"
    jwt_audience: str = "tasktrack-clients"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7
    store_backend: str = "sql"
    database_url: str = "sqlite+aiosqlite:///./tasktrack.db"
    environment: str = "development"
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])

    def problems(self) -> List[str]:
        """Return every configuration problem; empty when the settings are usable."""
        issues = []
        if not self.jwt_secret_key or not self.jwt_secret_key.strip():
            issues.append("JWT_SECRET_KEY missing")
        elif len(self.jwt_secret_key) < MIN_SECRET_LENGTH:
            issues.append(f"JWT_SECRET_KEY must be at least {MIN_SECRET_LENGTH} characters")
        if not self.jwt_issuer.strip():
            issues.append("JWT_ISSUER must not be empty")
        if not self.jwt_audience.strip():
            issues.append("JWT_AUDIENCE must not be empty")
        if self.access_token_expire_minutes <= 0:
            issues.append("ACCESS_TOKEN_EXPIRE_MINUTES must be positive")
        if self.refresh_token_expire_days <= 0:
            issues.append("REFRESH_TOKEN_EXPIRE_DAYS must be positive")
        if self.store_backend not in STORE_BACKENDS:
            issues.append(f"STORE_BACKEND must be one of: {', '.join(STORE_BACKENDS)}")
        if self.store_backend == "sql" and not self.database_url.strip():
            issues.append("DATABASE_URL must not be empty")
        return issues

    def validate(self) -> "Settings":
        issues = self.problems()
        if issues:
            raise RuntimeError("Invalid configuration: " + "; ".join(issues))
        return self


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> Settings:
    """Build validated settings from environment variables."""
    frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000").strip()
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    if frontend_url and frontend_url not in origins:
        origins.append(frontend_url)

    settings = Settings(
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", ""),
        jwt_issuer=os.getenv("JWT_ISSUER", "tasktrack-api").strip(),
        jwt_audience=os.getenv("JWT_AUDIENCE", "tasktrack-clients").strip(),
        access_token_expire_minutes=_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60),
        refresh_token_expire_days=_int_env("REFRESH_TOKEN_EXPIRE_DAYS", 7),
        store_backend=os.getenv("STORE_BACKEND", "sql").strip().lower(),
        database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tasktrack.db").strip(),
        environment=os.getenv("ENVIRONMENT", "development").strip(),
        frontend_url=frontend_url,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        cors_origins=origins,
    )
    return settings.validate()
