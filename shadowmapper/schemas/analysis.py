"""
API Schemas — Request and Response Models

Pydantic models for the Shadow Mapper API. Response bodies for the
analysis routes are the plain dicts produced by each result's
to_dict(), so only their envelopes are modelled here.
"""

from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


# ============================================================
# INPUTS
# ============================================================

class ResponseItem(BaseModel):
    """One model's raw output."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_index: int = Field(..., ge=0, alias="modelIndex")
    content: str = Field("", max_length=200_000)


class ClaimIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    label: str = ""
    text: str = ""
    type: str = ""
    role: str = ""
    supporters: list[int] = Field(default_factory=list)
    challenges: Optional[str] = None


class EdgeIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    type: str = Field(..., pattern="^(prerequisite|conflicts|supports|tradeoff)$")


# ============================================================
# REQUESTS
# ============================================================

class ExtractRequest(BaseModel):
    """POST /extract request body."""
    responses: list[ResponseItem] = Field(..., max_length=32)

    model_config = {"json_schema_extra": {"examples": [
        {"responses": [{"model_index": 0, "content": "You should always validate input before processing."}]},
    ]}}


class GraphRequest(BaseModel):
    """POST /structure and POST /shape request body."""
    claims: list[ClaimIn] = Field(default_factory=list, max_length=500)
    edges: list[EdgeIn] = Field(default_factory=list, max_length=5_000)
    ghost_count: int = Field(0, ge=0)
    model_count: Optional[int] = Field(None, ge=1)


class DeltaRequest(BaseModel):
    """POST /delta request body."""
    responses: list[ResponseItem] = Field(..., max_length=32)
    claims: list[ClaimIn] = Field(default_factory=list, max_length=500)
    edges: list[EdgeIn] = Field(default_factory=list, max_length=5_000)
    user_query: str = Field("", max_length=10_000)


class AnalyzeRequest(DeltaRequest):
    """POST /analyze request body."""
    ghost_count: int = Field(0, ge=0)
    model_count: Optional[int] = Field(None, ge=1)


# ============================================================
# RESPONSES
# ============================================================

class ShapeResponse(BaseModel):
    """POST /shape response body."""
    shape: dict[str, Any]
    stance: dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    core_version: str
    api_version: str
    inclusion_categories: int
    exclusion_rules: int
