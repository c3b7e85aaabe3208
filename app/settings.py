from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional


@dataclass
class Settings:
    """
    Centralized application configuration.

    Does NOT depend on pydantic. Values are loaded from environment
    variables via Settings.from_env().
    """

    # --- MySQL connection ---
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: Optional[str] = None

    # --- Pool ---
    db_pool_size: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600

    # --- HTTP ---
    api_prefix: str = "/api"
    cors_origins_raw: str = "*"

    # --- Reader limits ---
    max_page_size: int = 1000
    referenced_data_limit: int = 1000

    # --- Logging ---
    log_level: str = "INFO"

    # --- App version ---
    app_version: str = "dev"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins_raw.split(",") if o.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build Settings from environment variables with sane fallbacks.

        - Malformed integers fall back to the default.
        - An empty DB_NAME means "no database selected yet".
        """

        def getenv_int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError:
                return default

        db_name = os.getenv("DB_NAME", "").strip() or None

        prefix = os.getenv("API_PREFIX", cls.api_prefix).strip().rstrip("/")
        if prefix and not prefix.startswith("/"):
            prefix = "/" + prefix

        return cls(
            db_host=os.getenv("DB_HOST", cls.db_host),
            db_port=getenv_int("DB_PORT", cls.db_port),
            db_user=os.getenv("DB_USER", cls.db_user),
            db_password=os.getenv("DB_PASSWORD", cls.db_password),
            db_name=db_name,
            db_pool_size=getenv_int("DB_POOL_SIZE", cls.db_pool_size),
            db_pool_timeout=getenv_int("DB_POOL_TIMEOUT", cls.db_pool_timeout),
            db_pool_recycle=getenv_int("DB_POOL_RECYCLE", cls.db_pool_recycle),
            api_prefix=prefix,
            cors_origins_raw=os.getenv("CORS_ORIGINS", cls.cors_origins_raw),
            max_page_size=getenv_int("MAX_PAGE_SIZE", cls.max_page_size),
            referenced_data_limit=getenv_int(
                "REFERENCED_DATA_LIMIT", cls.referenced_data_limit
            ),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            app_version=os.getenv("APP_VERSION", cls.app_version),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
