"""Configuration management for the BookNav library service.

Settings are read from ``BOOKNAV_*`` environment variables (or a ``.env``
file) and validated with pydantic-settings:

1. Service metadata - name and version reported by the API
2. Persistence - SQLite path or a full SQLAlchemy URL
3. Security - token signing secret and lifetime
4. Circulation defaults - loan period and per-student checkout cap
5. Observability - log level and logfire switches
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """BookNav service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BOOKNAV_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Service Metadata ===

    app_name: str = Field(
        default="BookNav API",
        description="Human readable service name",
        min_length=3,
        max_length=80,
    )

    app_version: str = Field(
        default="0.1.0",
        description="Service version reported by the API",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/booknav.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides database_path when set",
    )

    # === HTTP Configuration ===

    http_host: str = Field(
        default="127.0.0.1",
        description="Host the HTTP server binds to",
    )

    http_port: int = Field(
        default=8000,
        description="Port the HTTP server binds to",
        ge=1024,
        le=65535,
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"],
        description="Origins allowed to call the API from a browser",
    )

    # === Security Configuration ===

    jwt_secret: str = Field(
        default="booknav-development-secret-change-me",
        description="Secret used to sign staff tokens",
        repr=False,
    )

    jwt_algorithm: str = Field(
        default="HS256",
        description="Token signing algorithm",
        pattern=r"^HS(256|384|512)$",
    )

    token_ttl_hours: int = Field(
        default=24,
        description="Lifetime of issued staff tokens in hours",
        ge=1,
        le=24 * 30,
    )

    # === Circulation Defaults ===

    default_due_days: int = Field(
        default=14,
        description="Loan period used when a checkout has no explicit due date",
        ge=1,
        le=365,
    )

    max_checkout_books: int = Field(
        default=5,
        description="Maximum number of open checkouts per student",
        ge=1,
        le=100,
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug behaviour and verbose logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Observability ===

    logfire_enabled: bool = Field(
        default=True,
        description="Configure logfire spans for circulation operations",
    )

    logfire_send: bool = Field(
        default=False,
        description="Ship spans to the logfire backend (requires a token)",
    )

    logfire_console: bool = Field(
        default=False,
        description="Echo spans to the console",
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """HMAC secrets shorter than 16 characters are rejected."""
        if len(v) < 16:
            raise ValueError("JWT secret must be at least 16 characters")
        return v

    @field_validator("http_port")
    @classmethod
    def validate_http_port(cls, v: int) -> int:
        """Refuse ports commonly taken by other services."""
        reserved_ports = {3306, 5432, 6379, 27017}
        if v in reserved_ports:
            raise ValueError(f"Port {v} is commonly reserved, choose another")
        return v

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        """True when running with debug switches on."""
        return self.debug or self.log_level == "DEBUG"

    @property
    def service_info(self) -> dict[str, str]:
        """Metadata returned by the root endpoint."""
        return {
            "name": self.app_name,
            "version": self.app_version,
        }

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create the process configuration."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = AppConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Drop the cached configuration (used by tests)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
