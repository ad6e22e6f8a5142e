"""Wire models for the discovery service responses"""

from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Dict, List, Optional, Union


class SearchResponsePayload(BaseModel):
    """Body of a /discover/search or /discover/search2 response"""
    model_config = ConfigDict(extra="ignore")

    results: List[Dict[str, Any]] = []
    aggregations: Dict[str, Any] = {}
    num_hits: Optional[int] = None
    is_result_count_lower_bound: bool = False
    top_level_ids_seen_so_far: Optional[List[str]] = None
    next_page_offset: Optional[Union[int, str]] = None

    @field_validator("results", "aggregations", mode="before")
    @classmethod
    def _null_as_empty(cls, value, info):
        if value is None:
            return [] if info.field_name == "results" else {}
        return value

    @field_validator("is_result_count_lower_bound", mode="before")
    @classmethod
    def _null_as_false(cls, value):
        return bool(value)


class LookupResponsePayload(BaseModel):
    """Body of a /discover/lookup response"""
    model_config = ConfigDict(extra="ignore")

    results: List[Dict[str, Any]] = []

    @field_validator("results", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return [] if value is None else value
