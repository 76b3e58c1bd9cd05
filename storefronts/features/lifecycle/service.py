"""Page lifecycle: keep page creation and deletion consistent with quota.

Creation reserves quota atomically before the page is written and gives the
reservation back if the write fails. Deletion releases quota only when the
caller names the owner.
"""

import logging
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from storefronts.core.errors import NotFoundError, ValidationError
from storefronts.core.logging import log_event
from storefronts.core.tracing import start_span
from storefronts.features.pages.service import PageConfigurationStore, get_page_store
from storefronts.features.plans.service import QuotaTracker, get_quota_tracker
from storefronts.models.page_setting import ContentType, PageSetting, PageSettings, PageSettingUpdate
from storefronts.models.user_plan import QuotaCheck

logger = logging.getLogger("storefronts")


class PageCreated(BaseModel):
    id: str
    limit: QuotaCheck


class PageLifecycleService:
    def __init__(
        self,
        pages: Optional[PageConfigurationStore] = None,
        quota: Optional[QuotaTracker] = None,
    ):
        self._pages = pages
        self._quota = quota

    @property
    def pages(self) -> PageConfigurationStore:
        return self._pages or get_page_store()

    @property
    def quota(self) -> QuotaTracker:
        return self._quota or get_quota_tracker()

    async def create(
        self,
        owner_id: str,
        tenant_id: str,
        page_type: str,
        route: str,
        content_type: ContentType = "static",
        data_source: Optional[Any] = None,
        settings: Optional[Union[PageSettings, Dict[str, Any]]] = None,
        parent_id: Optional[str] = None,
        order: int = 0,
    ) -> PageCreated:
        """Create a page if the owner's plan allows another one on this tenant.

        Raises:
            ValidationError: missing fields, bad route, or inconsistent source
            ConflictError: an enabled page already serves the route
            QuotaExceededError: page counter is at the plan limit
        """
        if not owner_id or not tenant_id or not page_type or not route:
            raise ValidationError("Missing required fields: pageType, route, userId")
        if not route.startswith("/"):
            raise ValidationError("Route must start with /")

        try:
            if not isinstance(settings, PageSettings):
                settings = PageSettings.model_validate(settings or {})
            setting = PageSetting.build(
                owner_id=owner_id,
                tenant_id=tenant_id,
                page_type=page_type,
                route=route,
                content_type=content_type,
                data_source=data_source,
                settings=settings,
                parent_id=parent_id,
                order=order,
            )
        except PydanticValidationError as exc:
            raise ValidationError("Invalid page setting", detail=str(exc)) from exc

        with start_span("lifecycle.create_page", {"tenant_id": tenant_id, "user_id": owner_id, "page_type": page_type}):
            if setting.settings.enabled:
                await self.pages.ensure_route_available(tenant_id, route, exclude_id=setting.id)

            limit = await self.quota.reserve_page(owner_id, tenant_id)
            try:
                page_id = await self.pages.upsert(setting)
            except Exception:
                await self._release_reservation(owner_id, tenant_id)
                raise

        log_event(
            "info",
            "lifecycle.page_created",
            user_id=owner_id,
            tenant_id=tenant_id,
            event_type="page_created",
            extra={"page_id": page_id, "current": limit.current, "max": limit.max},
        )
        return PageCreated(id=page_id, limit=limit)

    async def _release_reservation(self, owner_id: str, tenant_id: str) -> None:
        try:
            await self.quota.decrement_page(owner_id, tenant_id)
        except Exception:
            # The original write error is the one the caller sees.
            logger.error(
                "lifecycle.release_failed",
                exc_info=True,
                extra={"user_id": owner_id, "tenant_id": tenant_id},
            )

    async def delete(self, tenant_id: str, page_type: str, owner_id: Optional[str] = None) -> str:
        """Delete the tenant's page of this type.

        owner_id does not narrow the lookup. It names whose page counter is
        decremented, and without it no counter changes.
        """
        with start_span("lifecycle.delete_page", {"tenant_id": tenant_id, "page_type": page_type}):
            setting = await self.pages.find(tenant_id, page_type, owner_id)
            if setting is None or not await self.pages.remove(setting.id):
                raise NotFoundError("Page not found")
            if owner_id:
                await self.quota.decrement_page(owner_id, tenant_id)

        log_event(
            "info",
            "lifecycle.page_deleted",
            user_id=owner_id,
            tenant_id=tenant_id,
            event_type="page_deleted",
            extra={"page_id": setting.id, "quota_released": bool(owner_id)},
        )
        return setting.id

    async def update(
        self,
        tenant_id: str,
        page_type: str,
        changes: Union[PageSettingUpdate, Dict[str, Any]],
        owner_id: Optional[str] = None,
    ) -> PageSetting:
        with start_span("lifecycle.update_page", {"tenant_id": tenant_id, "page_type": page_type}):
            setting = await self.pages.find(tenant_id, page_type, owner_id)
            if setting is None:
                raise NotFoundError("Page not found")
            return await self.pages.update(setting.id, changes)


_lifecycle: Optional[PageLifecycleService] = None


def get_page_lifecycle() -> PageLifecycleService:
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = PageLifecycleService()
    return _lifecycle
