"""Project store: explicit handle over a SQLAlchemy session factory.

The HTTP app and MCP server each build one ``ProjectStore`` and pass it to the
code that needs it; nothing here is module-level state, so tests can hand in a
store bound to their own in-memory database.
"""
from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ecosync.db import create_db_engine, make_session_factory, session_scope
from ecosync.models import PartnerRecommendation, Project
from ecosync.schemas import PartnerCandidate, ProjectInput
from ecosync.utils import json_parse

UPDATABLE_FIELDS = ("name", "description", "stage", "funding_stage")


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def project_dict(proj: Project) -> dict[str, Any]:
    analysis = json_parse(proj.analysis_json, None) if proj.analysis_json else None
    return {
        "id": proj.id, "name": proj.name, "description": proj.description,
        "stage": proj.stage, "funding_stage": proj.funding_stage,
        "categories": json_parse(proj.categories_json, []),
        "analysis_results": analysis,
        "created_at": proj.created_at.isoformat(),
    }


def recommendation_dict(rec: PartnerRecommendation) -> dict[str, Any]:
    return {
        "id": rec.id, "project_id": rec.project_id,
        "name": rec.name, "type": rec.type,
        "description": rec.description, "reasoning": rec.reasoning,
        "match_score": rec.match_score, "mission_score": rec.mission_score,
        "technical_score": rec.technical_score, "strategic_score": rec.strategic_score,
        "community": rec.community, "tvl": rec.tvl,
        "created_at": rec.created_at.isoformat(),
    }


def apply_updates(obj, updates: dict[str, Any], fields: tuple[str, ...]) -> None:
    """Apply non-None values from updates dict to an ORM object."""
    for field in fields:
        val = updates.get(field)
        if val is not None:
            setattr(obj, field, val)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ProjectStore:
    """Create/get/update projects and their partner recommendations."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._factory = session_factory

    @classmethod
    def from_url(cls, url: str | None = None) -> ProjectStore:
        return cls(make_session_factory(create_db_engine(url)))

    def create_project(self, project: ProjectInput) -> dict[str, Any]:
        with session_scope(self._factory) as session:
            proj = Project(
                name=project.name, description=project.description,
                stage=project.stage, funding_stage=project.funding_stage,
                categories_json=json.dumps(project.categories),
                analysis_json=None,
            )
            session.add(proj)
            session.flush()
            return project_dict(proj)

    def get_project(self, project_id: int) -> dict[str, Any] | None:
        with session_scope(self._factory) as session:
            proj = session.get(Project, project_id)
            return project_dict(proj) if proj else None

    def update_project(
        self, project_id: int, *,
        analysis_results: dict[str, Any] | None = None,
        categories: list[str] | None = None,
        **updates: Any,
    ) -> dict[str, Any] | None:
        """Partial update; ``None`` values are ignored. Returns None if the project is missing."""
        with session_scope(self._factory) as session:
            proj = session.get(Project, project_id)
            if proj is None:
                return None
            apply_updates(proj, updates, UPDATABLE_FIELDS)
            if categories is not None:
                proj.categories_json = json.dumps(categories)
            if analysis_results is not None:
                proj.analysis_json = json.dumps(analysis_results)
            session.flush()
            return project_dict(proj)

    def add_recommendations(
        self, project_id: int, partners: Sequence[PartnerCandidate],
    ) -> list[dict[str, Any]]:
        with session_scope(self._factory) as session:
            recs = [
                PartnerRecommendation(
                    project_id=project_id, name=p.name, type=p.type,
                    description=p.description, reasoning=p.reasoning,
                    match_score=p.match_score, mission_score=p.mission_score,
                    technical_score=p.technical_score, strategic_score=p.strategic_score,
                    community=p.community or None, tvl=p.tvl or None,
                )
                for p in partners
            ]
            session.add_all(recs)
            session.flush()
            return [recommendation_dict(r) for r in recs]

    def get_recommendations(self, project_id: int) -> list[dict[str, Any]]:
        with session_scope(self._factory) as session:
            recs = session.execute(
                select(PartnerRecommendation)
                .where(PartnerRecommendation.project_id == project_id)
                .order_by(PartnerRecommendation.id)
            ).scalars().all()
            return [recommendation_dict(r) for r in recs]
