"""
storefronts/features/plans/service.py

Plan catalog and per-user quota tracking.

Handles:
- Plan seeding (free, starter, professional, enterprise)
- Lazy default-plan assignment on first usage read
- Storefront and per-storefront page counters
- Atomic quota reservation for page creation

Usage reads run under a deadline and degrade to an in-memory free-plan
snapshot when the store is slow or down. Mutations propagate store errors.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from storefronts.core.config import settings
from storefronts.core.docstore import Document, DocumentStore, get_document_store
from storefronts.core.errors import NotFoundError, QuotaExceededError, StoreUnavailableError
from storefronts.core.metrics import quota_denials_total, store_degraded_reads_total
from storefronts.core.tracing import start_span
from storefronts.models.plan import PlanDefinition, PlanLimits
from storefronts.models.user_plan import QuotaCheck, UserPlanUsage

logger = logging.getLogger("storefronts")

PLANS_COLLECTION = "subscription_plans"
USER_PLANS_COLLECTION = "user_plans"
DEFAULT_PLAN_ID = "free"


def _plan(plan_id: str, name: str, storefronts: int, pages: int, features) -> PlanDefinition:
    return PlanDefinition(
        plan_id=plan_id,
        plan_name=name,
        limits=PlanLimits(max_storefronts=storefronts, max_pages_per_storefront=pages),
        features=list(features),
    )


# Default plan configurations
DEFAULT_PLANS: Dict[str, PlanDefinition] = {
    "free": _plan("free", "Free", 1, 8, ["basic_support"]),
    "starter": _plan("starter", "Starter", 1, 15, ["basic_support", "custom_pages"]),
    "professional": _plan(
        "professional", "Professional", 3, 50, ["priority_support", "custom_pages", "custom_domain"]
    ),
    "enterprise": _plan(
        "enterprise", "Enterprise", 10, 100, ["priority_support", "custom_pages", "custom_domain", "api_access"]
    ),
}


def storefront_limit_message(max_storefronts: int) -> str:
    return (
        f"You have reached your plan limit of {max_storefronts} storefront(s). "
        "Please upgrade your plan to create more storefronts."
    )


def page_limit_message(max_pages: int) -> str:
    return (
        f"You have reached your plan limit of {max_pages} pages per storefront. "
        "Please upgrade your plan to create more pages."
    )


def _check(current: int, maximum: int, message: str) -> QuotaCheck:
    allowed = current < maximum
    return QuotaCheck(allowed=allowed, current=current, max=maximum, message=None if allowed else message)


class QuotaTracker:
    """Per-user plan assignment and usage counters."""

    def __init__(self, store: Optional[DocumentStore] = None, read_timeout: Optional[float] = None):
        self._store = store
        self._read_timeout = read_timeout

    @property
    def store(self) -> DocumentStore:
        return self._store or get_document_store()

    @property
    def read_timeout(self) -> float:
        if self._read_timeout is not None:
            return self._read_timeout
        return settings.USAGE_READ_TIMEOUT_SECONDS

    # ===== PLANS =====

    async def seed_plans(self) -> int:
        """Write missing plan documents (idempotent). Returns how many were added."""
        added = 0
        for plan_id, plan in DEFAULT_PLANS.items():
            document = plan.model_dump(mode="json", by_alias=True)
            created = []

            def apply(current: Optional[Document]) -> Optional[Document]:
                if current is not None:
                    return None
                created.append(plan_id)
                return document

            await self.store.transform(PLANS_COLLECTION, plan_id, apply)
            added += len(created)
        if added:
            logger.info("plans.seeded", extra={"count": added})
        return added

    async def get_plan_definition(self, plan_id: str) -> Optional[PlanDefinition]:
        """Stored plan document, else the built-in definition, else None."""
        try:
            data = await self.store.get(PLANS_COLLECTION, plan_id)
        except StoreUnavailableError as exc:
            self._degraded("get_plan_definition", exc, plan_id=plan_id)
            data = None
        if data is not None:
            try:
                return PlanDefinition.model_validate(data)
            except PydanticValidationError:
                logger.warning("plans.malformed_plan", extra={"plan_id": plan_id})
        return DEFAULT_PLANS.get(plan_id)

    async def _default_plan(self) -> PlanDefinition:
        return await self.get_plan_definition(DEFAULT_PLAN_ID) or DEFAULT_PLANS[DEFAULT_PLAN_ID]

    # ===== USAGE READS =====

    def _degraded(self, operation: str, exc: Exception, **context) -> None:
        store_degraded_reads_total.inc(labels={"operation": operation})
        logger.warning(
            "plans.read_degraded",
            extra={"operation": operation, "error_message": f"{exc.__class__.__name__}: {exc}", **context},
        )

    async def _load_or_assign(self, user_id: str) -> UserPlanUsage:
        data = await self.store.get(USER_PLANS_COLLECTION, user_id)
        if data is None:
            fresh = UserPlanUsage.fresh(user_id, await self._default_plan()).to_document()
            # Concurrent first reads converge on whichever record landed first.
            data = await self.store.transform(
                USER_PLANS_COLLECTION, user_id, lambda current: None if current is not None else fresh
            )
            logger.info("plans.default_assigned", extra={"user_id": user_id, "plan_id": data.get("planId")})
        return UserPlanUsage.model_validate(data)

    async def get_user_usage(self, user_id: str) -> UserPlanUsage:
        """Usage record for a user, created on first read.

        Falls back to an unsaved free-plan snapshot when the store fails,
        does not answer within the read deadline, or holds a malformed record.
        """
        with start_span("plans.get_user_usage", {"user_id": user_id}):
            try:
                return await asyncio.wait_for(self._load_or_assign(user_id), timeout=self.read_timeout)
            except (asyncio.TimeoutError, StoreUnavailableError, PydanticValidationError) as exc:
                self._degraded("get_user_usage", exc, user_id=user_id)
            return UserPlanUsage.fresh(user_id, DEFAULT_PLANS[DEFAULT_PLAN_ID])

    async def can_create_storefront(self, user_id: str) -> QuotaCheck:
        usage = await self.get_user_usage(user_id)
        maximum = usage.limits.max_storefronts
        return _check(usage.current_usage.storefronts, maximum, storefront_limit_message(maximum))

    async def can_create_page(self, user_id: str, tenant_id: str) -> QuotaCheck:
        usage = await self.get_user_usage(user_id)
        maximum = usage.limits.max_pages_per_storefront
        return _check(usage.current_usage.pages_for(tenant_id), maximum, page_limit_message(maximum))

    async def usage_summary(self, user_id: str) -> dict:
        usage = await self.get_user_usage(user_id)
        max_pages = usage.limits.max_pages_per_storefront
        return {
            "storefronts": {"current": usage.current_usage.storefronts, "max": usage.limits.max_storefronts},
            "pages": {
                tenant_id: {"current": count, "max": max_pages}
                for tenant_id, count in sorted(usage.current_usage.pages.items())
            },
        }

    # ===== MUTATIONS =====

    async def _mutate(self, user_id: str, operation: str, change: Callable[[UserPlanUsage], None]) -> UserPlanUsage:
        """Apply `change` to the user's record in one atomic store transform.

        A missing record is seeded with the default plan inside the same
        transform, so the mutation never runs against an absent document.
        """
        default_plan = await self._default_plan()

        def apply(current: Optional[Document]) -> Document:
            usage = UserPlanUsage.model_validate(current) if current else UserPlanUsage.fresh(user_id, default_plan)
            change(usage)
            return usage.to_document()

        with start_span(f"plans.{operation}", {"user_id": user_id}):
            updated = await self.store.transform(USER_PLANS_COLLECTION, user_id, apply)
        return UserPlanUsage.model_validate(updated)

    async def increment_storefront(self, user_id: str) -> UserPlanUsage:
        def change(usage: UserPlanUsage) -> None:
            usage.current_usage.storefronts += 1

        return await self._mutate(user_id, "increment_storefront", change)

    async def decrement_storefront(self, user_id: str) -> UserPlanUsage:
        def change(usage: UserPlanUsage) -> None:
            usage.current_usage.storefronts = max(0, usage.current_usage.storefronts - 1)

        return await self._mutate(user_id, "decrement_storefront", change)

    async def increment_page(self, user_id: str, tenant_id: str) -> UserPlanUsage:
        def change(usage: UserPlanUsage) -> None:
            usage.current_usage.pages[tenant_id] = usage.current_usage.pages_for(tenant_id) + 1

        return await self._mutate(user_id, "increment_page", change)

    async def decrement_page(self, user_id: str, tenant_id: str) -> UserPlanUsage:
        def change(usage: UserPlanUsage) -> None:
            usage.current_usage.pages[tenant_id] = max(0, usage.current_usage.pages_for(tenant_id) - 1)

        return await self._mutate(user_id, "decrement_page", change)

    async def reserve_storefront(self, user_id: str) -> QuotaCheck:
        """Check and increment the storefront counter in one step."""

        def change(usage: UserPlanUsage) -> None:
            current, maximum = usage.current_usage.storefronts, usage.limits.max_storefronts
            if current >= maximum:
                raise QuotaExceededError(storefront_limit_message(maximum), current=current, max=maximum)
            usage.current_usage.storefronts = current + 1

        try:
            usage = await self._mutate(user_id, "reserve_storefront", change)
        except QuotaExceededError:
            quota_denials_total.inc(labels={"resource": "storefront"})
            raise
        return QuotaCheck(allowed=True, current=usage.current_usage.storefronts, max=usage.limits.max_storefronts)

    async def reserve_page(self, user_id: str, tenant_id: str) -> QuotaCheck:
        """Check and increment the tenant's page counter in one step.

        Raises QuotaExceededError (nothing written) when the counter is
        already at the plan limit.
        """

        def change(usage: UserPlanUsage) -> None:
            current = usage.current_usage.pages_for(tenant_id)
            maximum = usage.limits.max_pages_per_storefront
            if current >= maximum:
                raise QuotaExceededError(page_limit_message(maximum), current=current, max=maximum)
            usage.current_usage.pages[tenant_id] = current + 1

        try:
            usage = await self._mutate(user_id, "reserve_page", change)
        except QuotaExceededError as exc:
            quota_denials_total.inc(labels={"resource": "page"})
            logger.info(
                "plans.quota_denied",
                extra={"user_id": user_id, "tenant_id": tenant_id, "current": exc.current, "max": exc.max},
            )
            raise
        return QuotaCheck(
            allowed=True,
            current=usage.current_usage.pages_for(tenant_id),
            max=usage.limits.max_pages_per_storefront,
        )

    async def change_plan(self, user_id: str, plan_id: str) -> UserPlanUsage:
        """Move a user to another plan, keeping their counters."""
        plan = await self.get_plan_definition(plan_id)
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found")

        def change(usage: UserPlanUsage) -> None:
            usage.plan_id = plan.plan_id
            usage.plan_name = plan.plan_name
            usage.limits = plan.limits
            usage.status = "active"
            usage.subscribed_at = datetime.now(timezone.utc)

        usage = await self._mutate(user_id, "change_plan", change)
        logger.info("plans.changed", extra={"user_id": user_id, "plan_id": plan_id})
        return usage


_quota_tracker: Optional[QuotaTracker] = None


def get_quota_tracker() -> QuotaTracker:
    global _quota_tracker
    if _quota_tracker is None:
        _quota_tracker = QuotaTracker()
    return _quota_tracker
