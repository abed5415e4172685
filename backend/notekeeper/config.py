"""
NoteKeeper Backend — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads environment variables (or a .env file),
       validates types and ranges, and exposes a `settings` singleton.
Who:   Imported by the app factory, the storage factory, and the tests.
When:  Loaded once at import; `create_app()` also accepts an explicit
       `Settings` instance so tests can build isolated configurations.

Backend selection:
    STORAGE_BACKEND=database  → RelationalStorage over DATABASE_URL
    STORAGE_BACKEND=file      → FileStorage under DATA_DIR
"""

import secrets
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults. Production deployments MUST
    override JWT_SECRET and the bootstrap admin password.
    """

    # ── Storage ───────────────────────────────────────────────────────────
    # Which StorageProvider implementation the process runs on.
    storage_backend: str = Field(
        default="file",
        description="Persistence backend: 'database' or 'file'",
    )

    # Any SQLAlchemy async URL, e.g. postgresql+asyncpg://user:pw@host/db
    database_url: str = Field(
        default="sqlite+aiosqlite:///./notekeeper.db",
        description="Async SQLAlchemy connection URL (database backend only)",
    )

    # Pool sizing is ignored for SQLite URLs.
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=5, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # Root for users.json, categories.json and notes/ (file backend only)
    data_dir: str = Field(default="./data")

    # ── Auth ──────────────────────────────────────────────────────────────
    # A fresh random secret per process unless configured: tokens do not
    # survive restarts in that case.
    jwt_secret: str = Field(default_factory=lambda: secrets.token_hex(32))
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7, ge=1)

    # bcrypt work factor; tests drop this to the minimum of 4.
    bcrypt_rounds: int = Field(default=12, ge=4, le=16)

    # ── Bootstrap admin ───────────────────────────────────────────────────
    # Seeded when the user collection is empty. The default password is a
    # known-weak credential and is logged as such on first boot.
    bootstrap_admin_username: str = Field(default="admin")
    bootstrap_admin_email: str = Field(default="admin@localhost")
    bootstrap_admin_password: str = Field(default="admin123", min_length=6)

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Accepts 'database' or 'file' (case-insensitive)."""
        normalized = v.strip().lower()
        valid = {"database", "file"}
        if normalized not in valid:
            raise ValueError(f"Invalid storage_backend '{v}'. Must be one of: {valid}")
        return normalized

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @property
    def uses_database(self) -> bool:
        return self.storage_backend == "database"

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def security_warnings(self) -> List[str]:
        """
        What:  Lists configuration values that are unsafe outside development.
        When:  Logged once during app startup (lifespan).
        """
        warnings = []
        if self.bootstrap_admin_password == "admin123":
            warnings.append(
                "BOOTSTRAP_ADMIN_PASSWORD is the default 'admin123'. "
                "Change it before exposing the service."
            )
        if "jwt_secret" not in self.model_fields_set:
            warnings.append(
                "JWT_SECRET is not set; a random secret was generated and "
                "issued tokens will be invalid after a restart."
            )
        return warnings


# Module-level instance used by `notekeeper.main:app`
settings = Settings()
