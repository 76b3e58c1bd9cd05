"""Tests for configuration validation."""

import logging

import pytest

from storefronts.core.config import FALLBACK_MAIN_DOMAIN, Settings, validate_config
from storefronts.features.routing.models import RoutingConfig


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_main_domain_falls_back_for_localhost():
    cfg = make_settings(MAIN_DOMAIN="localhost")
    assert cfg.main_domain == FALLBACK_MAIN_DOMAIN


def test_storefront_domain_defaults_to_main():
    cfg = make_settings(MAIN_DOMAIN="Platform.Test")
    assert cfg.main_domain == "platform.test"
    assert cfg.storefront_domain == "platform.test"


def test_valid_config_passes_strict():
    cfg = make_settings(MAIN_DOMAIN="platform.test", STOREFRONT_DOMAIN="shops.platform.test")
    assert validate_config(strict=True, settings_obj=cfg) is True


def test_unrelated_storefront_domain_fails_strict():
    cfg = make_settings(MAIN_DOMAIN="platform.test", STOREFRONT_DOMAIN="elsewhere.test")
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=cfg)


def test_bad_values_only_warn_when_not_strict(caplog):
    cfg = make_settings(MAIN_DOMAIN="platform.test", DOCSTORE_BACKEND="mongo", USAGE_READ_TIMEOUT_SECONDS=0)
    with caplog.at_level(logging.WARNING, logger="storefronts"):
        assert validate_config(strict=False, settings_obj=cfg) is True
    assert "DOCSTORE_BACKEND" in caplog.text
    assert "USAGE_READ_TIMEOUT_SECONDS" in caplog.text


def test_prefixes_must_be_absolute():
    cfg = make_settings(MAIN_DOMAIN="platform.test", PLATFORM_ROUTE_PREFIXES=["dashboard"])
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=cfg)


def test_routing_config_from_settings_normalizes():
    cfg = make_settings(
        MAIN_DOMAIN="platform.test",
        RESERVED_SUBDOMAINS=["WWW", "Admin"],
        REGISTERED_DOMAINS=["Shop.Example.com."],
    )

    routing = RoutingConfig.from_settings(cfg)

    assert routing.reserved_subdomains == frozenset({"www", "admin"})
    assert routing.registered_domains == frozenset({"shop.example.com"})
    assert routing.storefront_domain == "platform.test"
