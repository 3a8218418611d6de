from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.query import Platform


class CreateQueryRequest(BaseModel):
    keywords: List[str] = Field(min_length=1, examples=[["technology", "programming"]])
    platforms: List[Platform] = Field(min_length=1, examples=[["YOUTUBE"]])
    filters: Optional[Dict[str, Any]] = Field(default=None, examples=[{"minSubscribers": 1000, "maxResults": 30}])
