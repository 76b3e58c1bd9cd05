"""Request bodies for the page settings API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefronts.models.page_setting import ContentType, DataSource


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreatePageRequest(_Body):
    # pageType, route and userId are required; the lifecycle service checks them.
    user_id: Optional[str] = None
    page_type: Optional[str] = None
    route: Optional[str] = None
    content_type: ContentType = "static"
    data_source: Optional[DataSource] = None
    settings: Optional[Dict[str, Any]] = None
    parent_id: Optional[str] = None
    order: int = 0


class BootstrapPagesRequest(_Body):
    user_id: str = Field(min_length=1)


class EnsureCoverageRequest(_Body):
    user_id: str = Field(min_length=1)
    page_types: List[str] = Field(default_factory=list)
