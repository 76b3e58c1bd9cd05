"""Page create/delete/update kept consistent with page quota."""

import pytest

from storefronts.core.errors import ConflictError, NotFoundError, QuotaExceededError, StoreUnavailableError, ValidationError
from storefronts.features.lifecycle.service import PageLifecycleService
from storefronts.features.pages.service import PageConfigurationStore
from storefronts.features.plans.service import USER_PLANS_COLLECTION, QuotaTracker
from storefronts.models.page_setting import PageSettingUpdate


@pytest.fixture
def quota(memory_store):
    return QuotaTracker(memory_store)


@pytest.fixture
def pages(memory_store):
    return PageConfigurationStore(memory_store)


@pytest.fixture
def lifecycle(pages, quota):
    return PageLifecycleService(pages=pages, quota=quota)


async def page_count(quota, user_id="u1", tenant_id="shop1"):
    return (await quota.get_user_usage(user_id)).current_usage.pages_for(tenant_id)


@pytest.mark.asyncio
async def test_create_writes_page_and_counts_it(lifecycle, pages, quota):
    created = await lifecycle.create("u1", "shop1", "about", "/about", settings={"showInMenu": True})

    stored = await pages.get_by_key("shop1", "about", "u1")
    assert created.id == "u1_shop1_about"
    assert created.limit.limit() == {"current": 1, "max": 8}
    assert stored.settings.show_in_menu is True
    assert stored.settings.enabled is True
    assert await page_count(quota) == 1


@pytest.mark.asyncio
async def test_create_at_limit_is_rejected_with_numbers(lifecycle, pages, memory_store):
    await memory_store.set(USER_PLANS_COLLECTION, "u1", {
        "userId": "u1",
        "planId": "free",
        "planName": "Free",
        "limits": {"maxStorefronts": 1, "maxPagesPerStorefront": 8},
        "currentUsage": {"storefronts": 1, "pages": {"shop1": 8}},
        "subscribedAt": "2026-01-01T00:00:00+00:00",
        "status": "active",
    })

    with pytest.raises(QuotaExceededError) as excinfo:
        await lifecycle.create("u1", "shop1", "faq", "/faq")

    assert (excinfo.value.current, excinfo.value.max) == (8, 8)
    assert await pages.get_by_key("shop1", "faq", "u1") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "owner,tenant,page_type,route",
    [
        ("", "shop1", "about", "/about"),
        ("u1", "shop1", "", "/about"),
        ("u1", "shop1", "about", ""),
        ("u1", "shop1", "about", "about"),
    ],
)
async def test_create_validates_input(lifecycle, quota, owner, tenant, page_type, route):
    with pytest.raises(ValidationError):
        await lifecycle.create(owner, tenant, page_type, route)

    assert await page_count(quota) == 0


@pytest.mark.asyncio
async def test_create_rejects_inconsistent_source(lifecycle, quota):
    with pytest.raises(ValidationError):
        await lifecycle.create("u1", "shop1", "reviews", "/reviews", content_type="dynamic")

    assert await page_count(quota) == 0


@pytest.mark.asyncio
async def test_create_on_taken_route_conflicts(lifecycle, quota):
    await lifecycle.create("u1", "shop1", "about", "/about")

    with pytest.raises(ConflictError):
        await lifecycle.create("u1", "shop1", "company", "/about")

    assert await page_count(quota) == 1


@pytest.mark.asyncio
async def test_disabled_page_can_reuse_route(lifecycle):
    await lifecycle.create("u1", "shop1", "about", "/about")

    created = await lifecycle.create("u1", "shop1", "company", "/about", settings={"enabled": False})

    assert created.id == "u1_shop1_company"


@pytest.mark.asyncio
async def test_failed_page_write_releases_reservation(lifecycle, pages, quota, monkeypatch):
    async def broken_upsert(setting):
        raise StoreUnavailableError("Document store unavailable")

    monkeypatch.setattr(pages, "upsert", broken_upsert)

    with pytest.raises(StoreUnavailableError):
        await lifecycle.create("u1", "shop1", "about", "/about")

    assert await page_count(quota) == 0


@pytest.mark.asyncio
async def test_delete_without_owner_keeps_counter(lifecycle, pages, quota):
    await lifecycle.create("u1", "shop1", "about", "/about")

    await lifecycle.delete("shop1", "about")

    assert await pages.get_by_key("shop1", "about") is None
    assert await page_count(quota) == 1


@pytest.mark.asyncio
async def test_delete_with_owner_releases_quota(lifecycle, pages, quota):
    await lifecycle.create("u1", "shop1", "about", "/about")

    deleted = await lifecycle.delete("shop1", "about", owner_id="u1")

    assert deleted == "u1_shop1_about"
    assert await pages.get_by_key("shop1", "about") is None
    assert await page_count(quota) == 0


@pytest.mark.asyncio
async def test_delete_with_other_user_finds_page_and_releases_their_quota(lifecycle, pages, quota):
    await lifecycle.create("u1", "shop1", "about", "/about")
    await quota.increment_page("editor2", "shop1")

    deleted = await lifecycle.delete("shop1", "about", owner_id="editor2")

    assert deleted == "u1_shop1_about"
    assert await pages.get_by_key("shop1", "about") is None
    assert await page_count(quota, "editor2") == 0
    assert await page_count(quota, "u1") == 1


@pytest.mark.asyncio
async def test_delete_missing_page(lifecycle, quota):
    with pytest.raises(NotFoundError):
        await lifecycle.delete("shop1", "nothing", owner_id="u1")

    assert await page_count(quota) == 0


@pytest.mark.asyncio
async def test_update_has_no_quota_effect(lifecycle, quota):
    await lifecycle.create("u1", "shop1", "about", "/about")

    updated = await lifecycle.update("shop1", "about", PageSettingUpdate(order=4))

    assert updated.order == 4
    assert await page_count(quota) == 1


@pytest.mark.asyncio
async def test_update_missing_page(lifecycle):
    with pytest.raises(NotFoundError):
        await lifecycle.update("shop1", "nothing", {"order": 1})


@pytest.mark.asyncio
async def test_update_with_other_user_still_finds_page(lifecycle):
    await lifecycle.create("u1", "shop1", "about", "/about")

    updated = await lifecycle.update("shop1", "about", {"order": 2}, owner_id="editor2")

    assert updated.id == "u1_shop1_about"
    assert updated.order == 2
