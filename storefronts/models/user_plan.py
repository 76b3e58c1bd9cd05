"""
storefronts/models/user_plan.py

Per-user plan assignment with usage counters tracked against plan limits.
"""

from datetime import datetime, timezone
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefronts.models.plan import PlanDefinition, PlanLimits


class CurrentUsage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    storefronts: int = 0
    pages: Dict[str, int] = Field(default_factory=dict)  # tenantId -> page count

    def pages_for(self, tenant_id: str) -> int:
        return self.pages.get(tenant_id, 0)


class UserPlanUsage(BaseModel):
    """
    A user's plan, a snapshot of its limits, and current usage.

    Constraint: one record per user, counters never negative.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    plan_id: str
    plan_name: str
    limits: PlanLimits
    current_usage: CurrentUsage = Field(default_factory=CurrentUsage)
    subscribed_at: datetime
    expires_at: Optional[datetime] = None
    status: Literal["active", "inactive", "expired"] = "active"

    @classmethod
    def fresh(cls, user_id: str, plan: PlanDefinition) -> "UserPlanUsage":
        return cls(
            user_id=user_id,
            plan_id=plan.plan_id,
            plan_name=plan.plan_name,
            limits=plan.limits,
            current_usage=CurrentUsage(),
            subscribed_at=datetime.now(timezone.utc),
            status="active",
        )

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class QuotaCheck(BaseModel):
    """Outcome of a limit check: allowed iff current < max."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    current: int
    max: int
    message: Optional[str] = None

    def limit(self) -> Dict[str, int]:
        return {"current": self.current, "max": self.max}
