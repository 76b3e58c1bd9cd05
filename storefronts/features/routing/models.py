"""Edge routing configuration and decisions."""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple, Union

from storefronts.core.config import Settings


STOREFRONT_PREFIX = "/storefront"


@dataclass(frozen=True)
class RoutingConfig:
    """Read-only routing inputs, fixed at process start."""

    main_domain: str
    storefront_domain: str
    reserved_path_prefixes: Tuple[str, ...] = ()
    platform_route_prefixes: Tuple[str, ...] = ()
    reserved_subdomains: FrozenSet[str] = frozenset({"www", "app", "api"})
    loopback_hosts: FrozenSet[str] = frozenset({"localhost", "127.0.0.1", "::1"})
    cdn_suffixes: Tuple[str, ...] = ()
    registered_domains: FrozenSet[str] = frozenset()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "RoutingConfig":
        return cls(
            main_domain=cfg.main_domain,
            storefront_domain=cfg.storefront_domain,
            reserved_path_prefixes=tuple(cfg.RESERVED_PATH_PREFIXES),
            platform_route_prefixes=tuple(cfg.PLATFORM_ROUTE_PREFIXES),
            reserved_subdomains=frozenset(label.lower() for label in cfg.RESERVED_SUBDOMAINS),
            loopback_hosts=frozenset(host.lower() for host in cfg.LOOPBACK_HOSTS),
            cdn_suffixes=tuple(suffix.lower() for suffix in cfg.CDN_SUFFIXES),
            registered_domains=frozenset(domain.lower().rstrip(".") for domain in cfg.REGISTERED_DOMAINS),
        )


@dataclass(frozen=True)
class PassThrough:
    """Serve the request as platform traffic, untouched."""

    reason: str
    pass_through: bool = field(default=True, init=False)


@dataclass(frozen=True)
class StorefrontRoute:
    """Serve the request from a tenant storefront."""

    tenant_id: str
    raw_subdomain: Optional[str]
    is_custom_domain: bool
    rewritten_path: str
    pass_through: bool = field(default=False, init=False)


RoutingDecision = Union[PassThrough, StorefrontRoute]
