"""User plan and quota endpoints."""

from typing import Optional

from fastapi import APIRouter, Query, Request

from storefronts.core.errors import ValidationError
from storefronts.core.logging import get_request_id
from storefronts.features.plans.models import ChangePlanRequest, PlanUsageRequest
from storefronts.features.plans.service import get_quota_tracker


router = APIRouter(prefix="/api/user", tags=["plans"])


def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or get_request_id()


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise ValidationError("User ID is required")
    return user_id


@router.get("/limits")
async def get_limits(
    request: Request,
    user_id: Optional[str] = Query(None, alias="userId"),
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    storefront_id: Optional[str] = Query(None, alias="storefrontId"),
):
    """Plan, usage and the storefront/page checks for one user.

    `canCreatePage` is only computed when a tenant is given.
    """
    user_id = _require_user(user_id)
    tracker = get_quota_tracker()
    usage = await tracker.get_user_usage(user_id)
    storefront_check = await tracker.can_create_storefront(user_id)

    tenant = tenant_id or storefront_id
    page_check = await tracker.can_create_page(user_id, tenant) if tenant else None

    return {
        "plan": {
            "planId": usage.plan_id,
            "planName": usage.plan_name,
            "limits": usage.limits.model_dump(by_alias=True),
        },
        "usage": usage.current_usage.model_dump(by_alias=True),
        "canCreateStorefront": storefront_check.allowed,
        "storefrontLimit": {
            "current": storefront_check.current,
            "max": storefront_check.max,
            "message": storefront_check.message,
        },
        "canCreatePage": page_check.model_dump() if page_check else None,
        "request_id": _rid(request),
    }


@router.get("/plan")
async def get_plan(request: Request, user_id: Optional[str] = Query(None, alias="userId")):
    usage = await get_quota_tracker().get_user_usage(_require_user(user_id))
    return {"data": usage.to_document(), "request_id": _rid(request)}


@router.patch("/plan")
async def update_plan_usage(body: PlanUsageRequest, request: Request):
    """Apply a usage counter action."""
    tracker = get_quota_tracker()
    if body.action in ("incrementPage", "decrementPage") and not body.target_tenant:
        raise ValidationError("Storefront ID is required for page operations")

    if body.action == "incrementStorefront":
        usage = await tracker.increment_storefront(body.user_id)
    elif body.action == "decrementStorefront":
        usage = await tracker.decrement_storefront(body.user_id)
    elif body.action == "incrementPage":
        usage = await tracker.increment_page(body.user_id, body.target_tenant)
    else:
        usage = await tracker.decrement_page(body.user_id, body.target_tenant)
    return {"data": usage.to_document(), "request_id": _rid(request)}


@router.put("/plan")
async def change_plan(body: ChangePlanRequest, request: Request):
    usage = await get_quota_tracker().change_plan(body.user_id, body.plan_id)
    return {"data": usage.to_document(), "request_id": _rid(request)}


@router.get("/usage")
async def get_usage_summary(request: Request, user_id: Optional[str] = Query(None, alias="userId")):
    summary = await get_quota_tracker().usage_summary(_require_user(user_id))
    return {"data": summary, "request_id": _rid(request)}
