"""Connection settings for the Pulp database and the Pulp REST API."""

import logging
import os
from dataclasses import dataclass


DEFAULT_POOL_LIMIT = 20
MAX_POOL_LIMIT = 2**31 - 1


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DatabaseConfig:
    """Settings for connecting to a Pulp PostgreSQL database."""

    name: str = "pulp"
    host: str = "localhost"
    port: int = 5432
    user: str = "pulp"
    password: str = "password"
    ca_cert_path: str = ""
    pool_limit: int = DEFAULT_POOL_LIMIT
    statement_timeout_ms: int = 0
    # Seconds to wait for a free pooled connection; 0 waits indefinitely.
    acquire_timeout: float = 0

    def __post_init__(self):
        if self.pool_limit < 1 or self.pool_limit > MAX_POOL_LIMIT:
            raise ValueError(
                f"pool limit size is invalid: {self.pool_limit} "
                f"(must be between 1 and {MAX_POOL_LIMIT})"
            )
        if self.statement_timeout_ms < 0:
            raise ValueError(f"statement timeout must not be negative: {self.statement_timeout_ms}")
        if self.acquire_timeout < 0:
            raise ValueError(f"acquire timeout must not be negative: {self.acquire_timeout}")

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Build settings from POSTGRES_* environment variables."""
        return cls(
            name=os.getenv("POSTGRES_DB", "pulp"),
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=_int_from_env("POSTGRES_PORT", 5432),
            user=os.getenv("POSTGRES_USER", "pulp"),
            password=os.getenv("POSTGRES_PASSWORD", "password"),
            ca_cert_path=os.getenv("POSTGRES_CA_CERT_PATH", ""),
            pool_limit=_int_from_env("POSTGRES_POOL_LIMIT", DEFAULT_POOL_LIMIT),
            statement_timeout_ms=_int_from_env("POSTGRES_STATEMENT_TIMEOUT_MS", 0),
            acquire_timeout=_float_from_env("POSTGRES_ACQUIRE_TIMEOUT_SECONDS", 0),
        )

    def dsn(self) -> str:
        """Render a libpq keyword/value connection string."""
        connection_string = (
            f"host={self.host} port={self.port} dbname={self.name} "
            f"user={self.user} password={self.password}"
        )
        if self.ca_cert_path:
            connection_string += f" sslmode=verify-full sslrootcert={self.ca_cert_path}"
        else:
            connection_string += " sslmode=disable"
        if self.statement_timeout_ms:
            connection_string += f" options='-c statement_timeout={self.statement_timeout_ms}'"
        return connection_string


@dataclass(frozen=True)
class QueryLogConfig:
    """Tracing of every statement sent to the database."""

    enabled: bool = False
    level: str = "DEBUG"

    def __post_init__(self):
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ValueError(f"unknown query log level: {self.level}")

    @property
    def levelno(self) -> int:
        return logging.getLevelName(self.level.upper())

    @classmethod
    def from_env(cls) -> "QueryLogConfig":
        """Build settings from POSTGRES_LOG_QUERIES and POSTGRES_LOG_LEVEL."""
        return cls(
            enabled=_bool_from_env("POSTGRES_LOG_QUERIES", False),
            level=os.getenv("POSTGRES_LOG_LEVEL", "DEBUG"),
        )


@dataclass(frozen=True)
class PulpServerConfig:
    """Settings for the Pulp REST API."""

    url: str = "http://localhost:8080"
    username: str = "admin"
    password: str = "password"
    download_policy: str = "on_demand"
    request_timeout: int = 60

    @classmethod
    def from_env(cls) -> "PulpServerConfig":
        """Build settings from PULP_* environment variables."""
        return cls(
            url=os.getenv("PULP_SERVER_URL", "http://localhost:8080"),
            username=os.getenv("PULP_USERNAME", "admin"),
            password=os.getenv("PULP_PASSWORD", "password"),
            download_policy=os.getenv("PULP_DOWNLOAD_POLICY", "on_demand"),
            request_timeout=_int_from_env("PULP_REQUEST_TIMEOUT", 60),
        )
