"""Tests for host/path based tenant resolution."""

import pytest

from storefronts.features.routing.models import PassThrough, RoutingConfig, StorefrontRoute
from storefronts.features.routing.service import (
    extract_subdomain,
    is_custom_domain,
    normalize_host,
    resolve,
)


CONFIG = RoutingConfig(
    main_domain="platform.test",
    storefront_domain="platform.test",
    reserved_path_prefixes=("/api", "/_next", "/static"),
    platform_route_prefixes=("/dashboard", "/signin", "/signup", "/editor"),
    cdn_suffixes=(".netlify.app",),
)


def test_subdomain_request_is_routed_to_tenant():
    decision = resolve("shop1.platform.test", "/about", CONFIG)

    assert isinstance(decision, StorefrontRoute)
    assert decision.pass_through is False
    assert decision.tenant_id == "shop1"
    assert decision.raw_subdomain == "shop1"
    assert decision.is_custom_domain is False
    assert decision.rewritten_path == "/storefront/about"


def test_platform_route_on_main_domain_passes_through():
    decision = resolve("platform.test", "/dashboard/sales", CONFIG)

    assert isinstance(decision, PassThrough)
    assert decision.reason == "platform_route"


@pytest.mark.parametrize("label", ["shop1", "my-store", "a", "x9", "Shop2"])
@pytest.mark.parametrize("path", ["/", "/about", "/products/blue-shirt"])
def test_non_reserved_label_becomes_tenant(label, path):
    decision = resolve(f"{label}.platform.test", path, CONFIG)

    assert decision.pass_through is False
    assert decision.tenant_id == label.lower()
    expected = "/storefront" if path == "/" else f"/storefront{path}"
    assert decision.rewritten_path == expected


def test_root_path_collapses_to_bare_prefix():
    assert resolve("shop1.platform.test", "/", CONFIG).rewritten_path == "/storefront"


@pytest.mark.parametrize("host", ["platform.test", "www.platform.test", "PLATFORM.TEST:443"])
def test_main_domain_passes_through(host):
    decision = resolve(host, "/pricing", CONFIG)
    assert decision.pass_through is True
    assert decision.reason == "platform_host"


@pytest.mark.parametrize("label", ["www", "app", "api"])
def test_reserved_labels_never_become_tenants(label):
    decision = resolve(f"{label}.platform.test", "/about", CONFIG)
    assert decision.pass_through is True


@pytest.mark.parametrize("host", ["shop1.platform.test", "platform.test", "shop.example.com", "localhost:3000"])
@pytest.mark.parametrize("path", ["/logo.png", "/about.html", "/a/b.c/d"])
def test_dotted_paths_always_pass_through(host, path):
    decision = resolve(host, path, CONFIG)
    assert decision.pass_through is True
    assert decision.reason == "static_asset"


def test_reserved_prefix_wins_over_tenant_host():
    decision = resolve("shop1.platform.test", "/api/user/limits", CONFIG)
    assert decision.pass_through is True
    assert decision.reason == "reserved_prefix"


def test_prefix_match_is_segment_aware():
    # "/apiary" is not under "/api"
    decision = resolve("shop1.platform.test", "/apiary", CONFIG)
    assert decision.pass_through is False
    assert decision.rewritten_path == "/storefront/apiary"


@pytest.mark.parametrize("host", ["localhost", "localhost:3000", "127.0.0.1:8000", "[::1]:8080"])
def test_loopback_hosts_pass_through(host):
    decision = resolve(host, "/about", CONFIG)
    assert decision.pass_through is True
    assert decision.reason == "platform_host"


def test_cdn_domain_is_treated_as_platform():
    decision = resolve("storefronts-preview.netlify.app", "/about", CONFIG)
    assert decision.pass_through is True


def test_custom_domain_uses_normalized_host_as_tenant():
    decision = resolve("Shop.Example.com:443", "/contact", CONFIG)

    assert decision.pass_through is False
    assert decision.tenant_id == "shop.example.com"
    assert decision.raw_subdomain is None
    assert decision.is_custom_domain is True
    assert decision.rewritten_path == "/storefront/contact"


@pytest.mark.parametrize("host", ["intranet", "bad_host.example.com", "example.123", ""])
def test_implausible_hosts_pass_through(host):
    decision = resolve(host, "/about", CONFIG)
    assert decision.pass_through is True


def test_registered_domains_restrict_custom_domains():
    config = RoutingConfig(
        main_domain="platform.test",
        storefront_domain="platform.test",
        registered_domains=frozenset({"shop.example.com"}),
    )

    allowed = resolve("shop.example.com", "/", config)
    denied = resolve("evil.example.org", "/", config)

    assert allowed.pass_through is False
    assert allowed.tenant_id == "shop.example.com"
    assert denied.pass_through is True
    assert denied.reason == "unregistered_domain"


def test_subdomains_still_route_with_registered_domains():
    config = RoutingConfig(
        main_domain="platform.test",
        storefront_domain="platform.test",
        registered_domains=frozenset({"shop.example.com"}),
    )
    assert resolve("shop1.platform.test", "/", config).tenant_id == "shop1"


def test_unexpected_failure_fails_open(monkeypatch):
    import storefronts.features.routing.service as routing

    def boom(*args, **kwargs):
        raise RuntimeError("bad config")

    monkeypatch.setattr(routing, "_resolve", boom)
    decision = resolve("shop1.platform.test", "/about", CONFIG)

    assert decision.pass_through is True
    assert decision.reason == "error"


def test_resolve_uses_process_config_by_default():
    # conftest sets MAIN_DOMAIN=platform.test
    decision = resolve("shop1.platform.test", "/about")
    assert decision.tenant_id == "shop1"


def test_normalize_host():
    assert normalize_host("Shop1.Platform.Test:8080") == "shop1.platform.test"
    assert normalize_host("shop1.platform.test.") == "shop1.platform.test"
    assert normalize_host("[::1]:8080") == "::1"
    assert normalize_host("") == ""


def test_extract_subdomain_takes_leftmost_label():
    assert extract_subdomain("a.b.platform.test", CONFIG) == "a"
    assert extract_subdomain("platform.test", CONFIG) is None
    assert extract_subdomain("shop1.other.test", CONFIG) is None


def test_storefront_domain_hosts_are_not_custom_domains():
    config = RoutingConfig(main_domain="platform.test", storefront_domain="shops.platform.test")
    assert is_custom_domain("x.shops.platform.test", config) is False
    assert is_custom_domain("shop.example.com", config) is True
