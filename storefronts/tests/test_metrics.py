import pytest
from fastapi.testclient import TestClient

from storefronts.core.metrics import METRICS, Counter, http_requests_total, normalize_path, quota_denials_total
from storefronts.core.middleware.metrics import metric_path
from storefronts.main import app

client = TestClient(app)


def test_metrics_endpoint_exports_counters():
    client.get("/healthz")
    client.get("http://shop1.platform.test/")

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "version=0.0.4" in resp.headers["content-type"]
    assert 'http_requests_total{method="GET",path="/healthz",status="200"} 1.0' in resp.text
    assert 'edge_decisions_total{outcome="storefront",reason="subdomain"}' in resp.text


def test_storefront_paths_share_one_series():
    client.get("http://shop1.platform.test/products/a")
    client.get("http://shop1.platform.test/products/b")

    assert http_requests_total.value({"method": "GET", "path": "/storefront/*", "status": "200"}) == 2


def test_normalize_path_hides_ids():
    assert normalize_path("/api/items/123/7f3e9c2a-1111") == "/api/items/:id/:id"


def test_counter_labels_are_escaped():
    counter = Counter("demo_total", ["name"])
    counter.inc({"name": 'a"b'})

    assert counter.export() == ["# TYPE demo_total counter", 'demo_total{name="a\\"b"} 1.0']


def test_registry_reset():
    http_requests_total.inc({"method": "GET", "path": "/x", "status": "200"})
    METRICS.reset()

    assert http_requests_total.value({"method": "GET", "path": "/x", "status": "200"}) == 0


def test_unknown_label_is_rejected():
    with pytest.raises(ValueError):
        quota_denials_total.inc({"plan": "free"})


def test_tenant_ids_in_api_paths_collapse_to_route_template():
    client.get("/api/storefront/shop1/pages")
    client.get("/api/storefront/shop2/pages")

    assert http_requests_total.value(
        {"method": "GET", "path": "/api/storefront/{tenant_id}/pages", "status": "200"}
    ) == 2


def test_unmatched_paths_fall_back_to_normalized_path():
    assert metric_path({"path": "/nowhere/42"}) == "/nowhere/:id"
    assert metric_path({"path": "/storefront"}) == "/storefront/*"
