"""
storefronts/models/page_setting.py

Page settings: stored configuration for one addressable storefront page.

A setting is keyed by (owner, tenant, pageType). Its document id is derived
from that triple, so writing the same triple twice overwrites one record.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Optional, Union
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


PAGE_SETTINGS_COLLECTION = "page_settings"
PAGE_ID_SEPARATOR = "_"


def _encode_id_part(value: str) -> str:
    # quote() never emits "_" once it is removed from the safe set.
    return quote(value, safe="-.~")


def make_page_setting_id(owner_id: str, tenant_id: str, page_type: str) -> str:
    """Deterministic id for the (owner, tenant, pageType) triple.

    Each component is percent-encoded so the separator cannot occur inside
    one, which makes the encoding injective.
    """
    return PAGE_ID_SEPARATOR.join(
        _encode_id_part(part) for part in (owner_id, tenant_id, page_type)
    )


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StaticSource(_CamelModel):
    """Inline payload stored with the setting."""
    type: Literal["static"] = "static"
    static_data: Any = None


class CollectionSource(_CamelModel):
    """Documents of another collection in the document store."""
    type: Literal["collection"] = "collection"
    collection: str = Field(min_length=1)


class ApiSource(_CamelModel):
    """JSON fetched from an external HTTP endpoint."""
    type: Literal["api"] = "api"
    api_endpoint: str = Field(min_length=1)

    @field_validator("api_endpoint")
    @classmethod
    def _http_only(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("apiEndpoint must be an http(s) URL")
        return value


DataSource = Annotated[
    Union[StaticSource, CollectionSource, ApiSource],
    Field(discriminator="type"),
]

ContentType = Literal["static", "dynamic"]


class PageSettings(_CamelModel):
    """Visibility and metadata. Unknown keys are kept as extensions."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    enabled: bool = True
    show_in_menu: bool = False
    show_in_footer: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_route(route: str) -> str:
    if not route.startswith("/"):
        raise ValueError("route must start with /")
    return route


def _check_content_source(content_type: str, data_source) -> None:
    if content_type == "static" and not isinstance(data_source, StaticSource):
        raise ValueError("static pages need a static dataSource")
    if content_type == "dynamic" and isinstance(data_source, StaticSource):
        raise ValueError("dynamic pages need a collection or api dataSource")


class PageSetting(_CamelModel):
    id: str
    owner_id: str = Field(alias="userId")
    tenant_id: str = Field(alias="storefrontId")
    page_type: str = Field(min_length=1)
    parent_id: Optional[str] = None
    order: int = 0
    route: str
    content_type: ContentType = "static"
    data_source: DataSource = Field(default_factory=StaticSource)
    settings: PageSettings = Field(default_factory=PageSettings)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("route")
    @classmethod
    def _route_is_absolute(cls, value: str) -> str:
        return _check_route(value)

    @model_validator(mode="after")
    def _content_matches_source(self):
        _check_content_source(self.content_type, self.data_source)
        return self

    @classmethod
    def build(
        cls,
        *,
        owner_id: str,
        tenant_id: str,
        page_type: str,
        route: str,
        content_type: ContentType = "static",
        data_source: Optional[Union[StaticSource, CollectionSource, ApiSource]] = None,
        settings: Optional[PageSettings] = None,
        parent_id: Optional[str] = None,
        order: int = 0,
    ) -> "PageSetting":
        now = _utcnow()
        return cls(
            id=make_page_setting_id(owner_id, tenant_id, page_type),
            owner_id=owner_id,
            tenant_id=tenant_id,
            page_type=page_type,
            parent_id=parent_id,
            order=order,
            route=route,
            content_type=content_type,
            data_source=data_source if data_source is not None else StaticSource(),
            settings=settings if settings is not None else PageSettings(),
            created_at=now,
            updated_at=now,
        )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PageSettingUpdate(_CamelModel):
    """Partial update. `settings` keys are merged into the stored settings."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    parent_id: Optional[str] = None
    order: Optional[int] = None
    route: Optional[str] = None
    content_type: Optional[ContentType] = None
    data_source: Optional[DataSource] = None
    settings: Optional[Dict[str, Any]] = None

    @field_validator("route")
    @classmethod
    def _route_is_absolute(cls, value: Optional[str]) -> Optional[str]:
        return _check_route(value) if value is not None else value

    def changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent, in document shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)
