"""Request bodies for the user plan API."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


UsageAction = Literal["incrementStorefront", "decrementStorefront", "incrementPage", "decrementPage"]


class PlanUsageRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(min_length=1)
    action: UsageAction
    tenant_id: Optional[str] = None
    storefront_id: Optional[str] = None

    @property
    def target_tenant(self) -> Optional[str]:
        return self.tenant_id or self.storefront_id


class ChangePlanRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)
