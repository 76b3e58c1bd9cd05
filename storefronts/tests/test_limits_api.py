import asyncio

from fastapi.testclient import TestClient

from storefronts.core.docstore import get_document_store
from storefronts.features.plans.service import USER_PLANS_COLLECTION
from storefronts.main import app

client = TestClient(app)


def test_limits_for_new_user():
    resp = client.get("/api/user/limits", params={"userId": "new-user"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["plan"] == {
        "planId": "free",
        "planName": "Free",
        "limits": {"maxStorefronts": 1, "maxPagesPerStorefront": 8},
    }
    assert body["usage"] == {"storefronts": 0, "pages": {}}
    assert body["canCreateStorefront"] is True
    assert body["storefrontLimit"] == {"current": 0, "max": 1, "message": None}
    assert body["canCreatePage"] is None
    assert body["request_id"] == resp.headers["x-request-id"]


def test_limits_with_tenant_include_page_check():
    resp = client.get("/api/user/limits", params={"userId": "u1", "tenantId": "shop1"})

    assert resp.json()["canCreatePage"] == {"allowed": True, "current": 0, "max": 8, "message": None}


def test_limits_accept_storefront_id_alias():
    resp = client.get("/api/user/limits", params={"userId": "u1", "storefrontId": "shop1"})

    assert resp.json()["canCreatePage"]["max"] == 8


def test_limits_require_user_id():
    resp = client.get("/api/user/limits")

    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "User ID is required"


def test_storefront_limit_reached():
    client.patch("/api/user/plan", json={"userId": "u1", "action": "incrementStorefront"})

    body = client.get("/api/user/limits", params={"userId": "u1"}).json()

    assert body["canCreateStorefront"] is False
    assert body["storefrontLimit"]["current"] == 1
    assert "1 storefront(s)" in body["storefrontLimit"]["message"]


def test_plan_usage_actions():
    client.patch("/api/user/plan", json={"userId": "u1", "action": "incrementPage", "tenantId": "shop1"})
    client.patch("/api/user/plan", json={"userId": "u1", "action": "incrementPage", "storefrontId": "shop1"})
    resp = client.patch("/api/user/plan", json={"userId": "u1", "action": "decrementPage", "tenantId": "shop1"})

    assert resp.status_code == 200
    assert resp.json()["data"]["currentUsage"]["pages"] == {"shop1": 1}


def test_decrement_floors_at_zero():
    resp = client.patch("/api/user/plan", json={"userId": "u1", "action": "decrementStorefront"})

    assert resp.json()["data"]["currentUsage"]["storefronts"] == 0


def test_page_action_requires_tenant():
    resp = client.patch("/api/user/plan", json={"userId": "u1", "action": "incrementPage"})

    assert resp.status_code == 400


def test_unknown_action_is_400():
    resp = client.patch("/api/user/plan", json={"userId": "u1", "action": "resetEverything"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_get_plan_assigns_default():
    resp = client.get("/api/user/plan", params={"userId": "u2"})

    assert resp.status_code == 200
    assert resp.json()["data"]["planId"] == "free"
    assert resp.json()["data"]["status"] == "active"


def test_change_plan():
    resp = client.put("/api/user/plan", json={"userId": "u1", "planId": "starter"})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["planId"] == "starter"
    assert data["limits"]["maxPagesPerStorefront"] == 15


def test_change_to_unknown_plan_is_404():
    resp = client.put("/api/user/plan", json={"userId": "u1", "planId": "platinum"})

    assert resp.status_code == 404


def test_usage_summary():
    client.patch("/api/user/plan", json={"userId": "u1", "action": "incrementPage", "tenantId": "shop1"})

    resp = client.get("/api/user/usage", params={"userId": "u1"})

    assert resp.json()["data"]["pages"] == {"shop1": {"current": 1, "max": 8}}


def test_malformed_usage_record_still_answers():
    asyncio.run(get_document_store().set(USER_PLANS_COLLECTION, "broken", {"userId": "broken", "limits": None}))

    resp = client.get("/api/user/limits", params={"userId": "broken"})

    assert resp.status_code == 200
    assert resp.json()["plan"]["planId"] == "free"
