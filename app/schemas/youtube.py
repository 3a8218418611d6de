from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

SearchOrder = Literal["relevance", "date", "rating", "title", "viewCount", "videoCount"]
ChannelType = Literal["any", "show"]


class SearchOptions(BaseModel):
    """Channel search parameters and result filters, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    keywords: List[str] = Field(min_length=1)
    max_results: Optional[int] = Field(default=None, ge=1)
    order: SearchOrder = "viewCount"
    channel_type: ChannelType = "any"
    region_code: Optional[str] = None
    relevance_language: Optional[str] = None

    min_subscribers: Optional[int] = Field(default=None, ge=0)
    max_subscribers: Optional[int] = Field(default=None, ge=0)
    min_video_count: Optional[int] = Field(default=None, ge=0)
    max_video_count: Optional[int] = Field(default=None, ge=0)
    min_view_count: Optional[int] = Field(default=None, ge=0)
    max_view_count: Optional[int] = Field(default=None, ge=0)
    country: Optional[str] = None
    has_contact_info: bool = False

    published_after: Optional[str] = None
    published_before: Optional[str] = None

    @classmethod
    def from_filters(cls, keywords: List[str], filters: Optional[Dict[str, Any]] = None) -> "SearchOptions":
        return cls.model_validate({**(filters or {}), "keywords": keywords})

    def to_filters(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def validation_message(exc: ValidationError) -> str:
    """One-line summary of a pydantic error, e.g. ``maxResults: Input should be ...``."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)
