"""
storefronts/features/routing/service.py

Edge routing: decide from host and path whether a request is platform
traffic or belongs to a tenant storefront.

`resolve` is pure and synchronous and always returns a decision. Anything
unexpected fails open to pass-through so the platform stays reachable.

Known limitation: a path containing "." is treated as a static asset, so
storefront pages cannot use dots in their routes.
"""

import logging
import re
from functools import lru_cache
from typing import Optional

from storefronts.core.config import settings
from storefronts.features.routing.models import (
    STOREFRONT_PREFIX,
    PassThrough,
    RoutingConfig,
    RoutingDecision,
    StorefrontRoute,
)

logger = logging.getLogger("storefronts")

_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_TLD_RE = re.compile(r"^[a-z][a-z0-9-]*[a-z0-9]$")


@lru_cache(maxsize=1)
def get_routing_config() -> RoutingConfig:
    return RoutingConfig.from_settings(settings)


def normalize_host(host: str) -> str:
    """Strip the port and trailing dot, lower-case."""
    value = (host or "").strip().lower()
    if value.startswith("["):
        end = value.find("]")
        return value[1:end] if end != -1 else value[1:]
    if value.count(":") > 1:
        # Bare IPv6 literal, no port to strip
        return value
    return value.split(":", 1)[0].rstrip(".")


def _has_prefix(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    if not prefix:
        return False
    return path == prefix or path.startswith(prefix + "/")


def extract_subdomain(host: str, config: RoutingConfig) -> Optional[str]:
    """Leftmost label of a host under the main domain, unless reserved."""
    main = config.main_domain
    if main == "localhost" or not host.endswith(f".{main}"):
        return None
    remainder = host[: -(len(main) + 1)]
    label = remainder.split(".", 1)[0]
    if not label or label in config.reserved_subdomains:
        return None
    return label


def is_main_domain(host: str, config: RoutingConfig) -> bool:
    main = config.main_domain
    if host == main or host == f"www.{main}":
        return True
    return any(host.endswith(suffix) for suffix in config.cdn_suffixes)


def looks_like_domain(host: str) -> bool:
    """Plausible registrable DNS name: dotted, valid labels, alphabetic TLD."""
    labels = host.split(".")
    if len(labels) < 2:
        return False
    if not all(_LABEL_RE.match(label) for label in labels):
        return False
    return bool(_TLD_RE.match(labels[-1]))


def is_custom_domain(host: str, config: RoutingConfig) -> bool:
    storefront = config.storefront_domain
    if host == storefront or host.endswith(f".{storefront}"):
        return False
    if not looks_like_domain(host):
        return False
    if config.registered_domains:
        return host in config.registered_domains
    return True


def storefront_path(path: str) -> str:
    return STOREFRONT_PREFIX if path == "/" else f"{STOREFRONT_PREFIX}{path}"


def _resolve(host: str, path: str, config: RoutingConfig) -> RoutingDecision:
    if any(_has_prefix(path, prefix) for prefix in config.reserved_path_prefixes):
        return PassThrough(reason="reserved_prefix")
    if "." in path:
        return PassThrough(reason="static_asset")
    if any(_has_prefix(path, prefix) for prefix in config.platform_route_prefixes):
        return PassThrough(reason="platform_route")

    hostname = normalize_host(host)
    loopback = hostname in config.loopback_hosts
    subdomain = None if loopback else extract_subdomain(hostname, config)
    main = is_main_domain(hostname, config)

    if subdomain is None:
        if loopback or main:
            return PassThrough(reason="platform_host")
        if not is_custom_domain(hostname, config):
            reason = "unregistered_domain" if config.registered_domains and looks_like_domain(hostname) else "unrecognized_host"
            return PassThrough(reason=reason)

    return StorefrontRoute(
        tenant_id=subdomain or hostname,
        raw_subdomain=subdomain,
        is_custom_domain=subdomain is None,
        rewritten_path=storefront_path(path),
    )


def resolve(host: str, path: str, config: Optional[RoutingConfig] = None) -> RoutingDecision:
    """Route a request by host and path; never raises."""
    cfg = config or get_routing_config()
    try:
        return _resolve(host or "", path or "/", cfg)
    except Exception:
        logger.warning("edge.resolve_failed", exc_info=True, extra={"host": host, "path": path})
        return PassThrough(reason="error")
