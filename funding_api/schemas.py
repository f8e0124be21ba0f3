from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class FilterCriteriaModel(BaseModel):
    search_term: str = ""
    round: str = ""
    # Millions, as typed into the form; blank or unparsable means unbounded.
    min_funding: Optional[Union[float, str]] = None
    max_funding: Optional[Union[float, str]] = None


class DashboardRequest(BaseModel):
    filters: FilterCriteriaModel = Field(default_factory=FilterCriteriaModel)
    page: int = Field(default=1, ge=1)


class RoundsResponse(BaseModel):
    rounds: List[str]


class HealthResponse(BaseModel):
    status: str
    dataset: str
    table: str
    error: Optional[str] = None
