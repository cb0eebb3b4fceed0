"""
Application Configuration Module

All configuration values are loaded from environment variables (or a local
.env file). Defaults are only for local development.
"""

import os
from typing import Optional
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class DatabaseConfig:
    """Database connection configuration."""
    host: str
    port: int
    user: str
    password: str
    database: str
    url_override: Optional[str] = None

    @classmethod
    def from_env(cls, prefix: str = "MYSQL") -> "DatabaseConfig":
        """Load database config from environment variables.

        DATABASE_URL, when set, wins over the individual MYSQL_* values.
        """
        return cls(
            host=os.getenv(f"{prefix}_HOST", "localhost"),
            port=int(os.getenv(f"{prefix}_PORT", "3306")),
            user=os.getenv(f"{prefix}_USER", "root"),
            password=os.getenv(f"{prefix}_PASSWORD", ""),
            database=os.getenv(f"{prefix}_DATABASE", "loans"),
            url_override=os.getenv("DATABASE_URL") or None,
        )

    @property
    def url(self) -> str:
        if self.url_override:
            return self.url_override
        return f"mysql+pymysql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class RedisConfig:
    """Redis connection configuration."""
    host: str
    port: int
    db: int
    password: Optional[str]
    # Kept short so a degraded cache cannot stall the request path
    socket_timeout: float = 0.5
    socket_connect_timeout: float = 0.5

    @classmethod
    def from_env(cls) -> "RedisConfig":
        """Load Redis config from environment variables."""
        password = os.getenv("REDIS_PASSWORD")
        return cls(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            db=int(os.getenv("REDIS_DB", "0")),
            password=password if password else None,
            socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5")),
            socket_connect_timeout=float(os.getenv("REDIS_CONNECT_TIMEOUT", "0.5")),
        )


@dataclass
class CacheConfig:
    """Cache TTL and behavior configuration."""
    # TTL values in seconds
    loan_ttl: int = 600            # 10 minutes for loans, identity lists and history
    enabled: bool = True

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Load cache config from environment variables."""
        loan_ttl = int(os.getenv("CACHE_LOAN_TTL", "600"))
        if loan_ttl <= 0:
            raise ValueError(f"CACHE_LOAN_TTL must be a positive number of seconds, got {loan_ttl}")
        return cls(
            loan_ttl=loan_ttl,
            enabled=os.getenv("CACHE_ENABLED", "true").lower() == "true",
        )


@dataclass
class AppConfig:
    """HTTP service and logging configuration."""
    log_level: str = "INFO"
    json_logs: bool = False
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=os.getenv("LOG_JSON", "false").lower() == "true",
            cors_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"),
        )


# Global config instances (lazy loaded)
_db_config = None
_redis_config = None
_cache_config = None
_app_config = None


def get_db_config() -> DatabaseConfig:
    """Get database configuration (singleton)."""
    global _db_config
    if _db_config is None:
        _db_config = DatabaseConfig.from_env()
    return _db_config


def get_redis_config() -> RedisConfig:
    """Get Redis configuration (singleton)."""
    global _redis_config
    if _redis_config is None:
        _redis_config = RedisConfig.from_env()
    return _redis_config


def get_cache_config() -> CacheConfig:
    """Get cache configuration (singleton)."""
    global _cache_config
    if _cache_config is None:
        _cache_config = CacheConfig.from_env()
    return _cache_config


def get_app_config() -> AppConfig:
    """Get HTTP service configuration (singleton)."""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config
