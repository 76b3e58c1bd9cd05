"""Storefront rendering reached through the edge rewrite."""

import asyncio

from fastapi.testclient import TestClient

from storefronts.core.docstore import get_document_store
from storefronts.main import app

client = TestClient(app)

SHOP = "http://shop1.platform.test"


def create_page(**overrides):
    body = {"userId": "u1", "pageType": "about", "route": "/about"}
    body.update(overrides)
    resp = client.post("/api/storefront/shop1/pages", json=body)
    assert resp.status_code == 200
    return resp


def test_subdomain_page_renders_configured_content():
    create_page(
        dataSource={"type": "static", "staticData": {"title": "About Us"}},
        settings={"showInMenu": True, "showInFooter": True, "metaTitle": "About Us"},
    )

    resp = client.get(f"{SHOP}/about")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["tenantId"] == "shop1"
    assert data["isCustomDomain"] is False
    assert data["route"] == "/about"
    assert data["pageType"] == "about"
    assert data["content"] == {"title": "About Us"}
    assert [item["label"] for item in data["menu"]] == ["Home", "About Us"]
    assert data["footer"] == [{"label": "About Us", "route": "/about", "order": 0}]


def test_dynamic_page_reads_collection():
    create_page(
        pageType="testimonial",
        route="/testimonials",
        contentType="dynamic",
        dataSource={"type": "collection", "collection": "testimonials_shop1"},
    )
    asyncio.run(get_document_store().set("testimonials_shop1", "t1", {"author": "Ann"}))

    data = client.get(f"{SHOP}/testimonials").json()["data"]

    assert data["content"] == [{"id": "t1", "author": "Ann"}]


def test_home_route_falls_back_to_standard_page():
    data = client.get(f"{SHOP}/").json()["data"]

    assert data["pageType"] == "homepage"
    assert data["page"] is None
    assert data["menu"] == [{"label": "Home", "route": "/", "order": -1, "children": []}]


def test_product_detail_route():
    data = client.get(f"{SHOP}/products/blue-shirt").json()["data"]

    assert data["pageType"] == "product-detail"


def test_disabled_page_is_not_served():
    create_page(pageType="secret", route="/secret", settings={"enabled": False})

    assert client.get(f"{SHOP}/secret").status_code == 404


def test_unknown_route_is_404():
    resp = client.get(f"{SHOP}/nowhere")

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_pages_are_tenant_scoped():
    create_page()

    assert client.get("http://shop2.platform.test/about").status_code == 404


def test_custom_domain_uses_host_as_tenant():
    client.post(
        "/api/storefront/shop.example.com/pages",
        json={"userId": "u1", "pageType": "about", "route": "/about"},
    )

    data = client.get("http://shop.example.com/about").json()["data"]

    assert data["tenantId"] == "shop.example.com"
    assert data["isCustomDomain"] is True


def test_direct_storefront_path_without_tenant_is_404():
    resp = client.get("http://platform.test/storefront/about")

    assert resp.status_code == 404
