import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional


FALLBACK_MAIN_DOMAIN = "dfoldlab.co.uk"


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Document store
    DATABASE_URL: str = "sqlite:///./storefronts.db"
    DOCSTORE_BACKEND: str = "sql"  # sql | memory

    # Tenant resolution
    MAIN_DOMAIN: str = FALLBACK_MAIN_DOMAIN
    STOREFRONT_DOMAIN: Optional[str] = None  # defaults to MAIN_DOMAIN
    RESERVED_PATH_PREFIXES: List[str] = [
        "/api",
        "/_next",
        "/static",
        "/healthz",
        "/readyz",
        "/metrics",
        "/docs",
        "/redoc",
    ]
    PLATFORM_ROUTE_PREFIXES: List[str] = [
        "/dashboard",
        "/signin",
        "/signup",
        "/forgot-password",
        "/reset-password",
        "/verify",
        "/editor",
    ]
    RESERVED_SUBDOMAINS: List[str] = ["www", "app", "api"]
    LOOPBACK_HOSTS: List[str] = ["localhost", "127.0.0.1", "::1"]
    CDN_SUFFIXES: List[str] = [".netlify.app"]
    REGISTERED_DOMAINS: List[str] = []  # empty = suffix heuristics

    # Quota tracking
    USAGE_READ_TIMEOUT_SECONDS: float = 5.0

    # Page content
    CONTENT_FETCH_TIMEOUT_SECONDS: float = 10.0

    # HTTP
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Observability / Tracing
    OTEL_ENABLED: bool = False
    OTEL_EXPORTER: str = "console"  # console | memory

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def main_domain(self) -> str:
        """Platform domain with the hard-coded fallback applied."""
        domain = (self.MAIN_DOMAIN or "").strip().lower()
        if not domain or domain == "localhost":
            return FALLBACK_MAIN_DOMAIN
        return domain

    @property
    def storefront_domain(self) -> str:
        return (self.STOREFRONT_DOMAIN or "").strip().lower() or self.main_domain


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate routing and storage configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("storefronts")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if cfg.DOCSTORE_BACKEND not in ("sql", "memory"):
        problems.append(f"DOCSTORE_BACKEND must be 'sql' or 'memory', got {cfg.DOCSTORE_BACKEND!r}")
    if cfg.DOCSTORE_BACKEND == "sql" and not cfg.DATABASE_URL:
        problems.append("DATABASE_URL is required for the sql document store")
    if (cfg.MAIN_DOMAIN or "").strip().lower() in ("", "localhost"):
        problems.append(f"MAIN_DOMAIN is unset or localhost; using {FALLBACK_MAIN_DOMAIN}")
    storefront = cfg.storefront_domain
    main = cfg.main_domain
    if storefront != main and not storefront.endswith(f".{main}") and not main.endswith(f".{storefront}"):
        problems.append(f"STOREFRONT_DOMAIN {storefront} is unrelated to MAIN_DOMAIN {main}")
    bad_prefixes = [p for p in list(cfg.RESERVED_PATH_PREFIXES) + list(cfg.PLATFORM_ROUTE_PREFIXES) if not p.startswith("/")]
    if bad_prefixes:
        problems.append(f"Path prefixes must start with '/': {', '.join(bad_prefixes)}")
    if cfg.USAGE_READ_TIMEOUT_SECONDS <= 0:
        problems.append("USAGE_READ_TIMEOUT_SECONDS must be positive")

    if problems:
        message = "Invalid configuration: " + "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
