"""
storefronts/models/plan.py

Plan definitions: named tiers bundling numeric limits and feature flags.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PlanLimits(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    max_storefronts: int = Field(ge=0)
    max_pages_per_storefront: int = Field(ge=0)


class PlanDefinition(BaseModel):
    """
    A subscription tier.

    Plans do NOT include pricing or billing cycles; those live with the
    payment provider.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    plan_id: str
    plan_name: str
    limits: PlanLimits
    features: List[str] = Field(default_factory=list)
