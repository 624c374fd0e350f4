"""Pydantic schemas: analysis contract types and Ecosync API request/response shapes.

Everything here serializes with camelCase keys (``matchScore``, ``fundingStage``,
``isDemo``), which is the wire format shared by the HTTP API, the MCP tools and
the generative backend's JSON output.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PARTNER_COUNT = 5
MIN_SCORE = 1
MAX_SCORE = 100
MIN_DESCRIPTION_LENGTH = 50


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenWireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Analysis contract
# ---------------------------------------------------------------------------


class ProjectInput(_FrozenWireModel):
    """A founder's project as submitted for partner analysis."""
    name: str = Field(min_length=1, description="Project name")
    description: str = Field(min_length=MIN_DESCRIPTION_LENGTH, description="What the project does")
    stage: str = Field(min_length=1, description="Development stage, e.g. 'MVP'")
    funding_stage: str = Field(min_length=1, description="Funding stage, e.g. 'Pre-seed'")
    categories: list[str] = Field(min_length=1, description="Category tags, e.g. 'DeFi'")


class PartnerCandidate(_FrozenWireModel):
    name: str
    type: str
    description: str
    reasoning: str
    match_score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    mission_score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    technical_score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    strategic_score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    community: str | None = None
    tvl: str | None = None


class AnalysisResult(_FrozenWireModel):
    """Summary plus exactly five scored partners. ``is_demo`` marks fallback output."""
    summary: str
    partners: list[PartnerCandidate] = Field(min_length=PARTNER_COUNT, max_length=PARTNER_COUNT)
    is_demo: bool = False


# ---------------------------------------------------------------------------
# API responses
# ---------------------------------------------------------------------------


class ScoreBreakdown(_WireModel):
    mission: int
    technical: int
    strategic: int


class PartnerOut(_WireModel):
    name: str
    type: str
    description: str
    reasoning: str
    match_score: int
    scores: ScoreBreakdown
    community: str | None = None
    tvl: str | None = None


class AnalyzeResponse(_WireModel):
    project_id: int
    summary: str
    is_demo: bool = False
    partners: list[PartnerOut]


class ProjectOut(_WireModel):
    id: int
    name: str
    description: str
    stage: str
    funding_stage: str
    categories: list[str]
    analysis_results: dict[str, Any] | None = None
    created_at: str


class RecommendationOut(_WireModel):
    id: int
    project_id: int
    name: str
    type: str
    description: str
    reasoning: str
    match_score: int
    mission_score: int
    technical_score: int
    strategic_score: int
    community: str | None = None
    tvl: str | None = None
    created_at: str


class ProjectDetail(_WireModel):
    project: ProjectOut
    recommendations: list[RecommendationOut] = []
