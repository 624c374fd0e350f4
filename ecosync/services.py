"""Shared business logic for the Ecosync API and MCP server."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from ecosync.analyzer import BackendError, BackendErrorKind, LLMClient, analyze_project
from ecosync.demo import analyze_offline
from ecosync.schemas import AnalysisResult, ProjectInput
from ecosync.store import ProjectStore

log = logging.getLogger(__name__)

DEFAULT_ANALYSIS_TIMEOUT = 60.0

AUTH_HELP = (
    "Please provide a valid API key (OPENAI_API_KEY, or ANTHROPIC_API_KEY with "
    "LLM_PROVIDER=anthropic) to enable AI-powered analysis, or use demo mode."
)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def analysis_timeout() -> float:
    raw = os.environ.get("ECOSYNC_ANALYSIS_TIMEOUT", "")
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_ANALYSIS_TIMEOUT
    return value if value > 0 else DEFAULT_ANALYSIS_TIMEOUT


def fallback_on_unknown_default() -> bool:
    return os.environ.get("ECOSYNC_FALLBACK_ON_UNKNOWN", "").strip().lower() in ("1", "true", "yes")


def _ensure_client(client: LLMClient | None) -> LLMClient:
    return client if client is not None else LLMClient()


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def run_analysis(
    project: ProjectInput,
    client: LLMClient | None = None,
    *,
    demo: bool = False,
    fallback_on_unknown: bool | None = None,
    timeout: float | None = None,
) -> AnalysisResult:
    """Analyze a project, degrading to the offline generator when the backend can't deliver.

    Quota, malformed-output and timeout failures return ``analyze_offline``'s
    result (``is_demo`` set).  ``AUTH_INVALID`` is always raised so a bad or
    missing key is never hidden behind demo data.  ``UNKNOWN`` is raised unless
    ``fallback_on_unknown`` (default: ``ECOSYNC_FALLBACK_ON_UNKNOWN``) is set.
    """
    if demo:
        return analyze_offline(project)
    if fallback_on_unknown is None:
        fallback_on_unknown = fallback_on_unknown_default()

    try:
        client = _ensure_client(client)
        return await asyncio.wait_for(
            analyze_project(project, client),
            timeout=timeout or analysis_timeout(),
        )
    except TimeoutError as exc:
        err = BackendError(f"Analysis timed out: {exc}", BackendErrorKind.TIMEOUT)
    except BackendError as exc:
        err = exc

    if err.recoverable or (fallback_on_unknown and err.kind is BackendErrorKind.UNKNOWN):
        log.warning("Backend %s for %s, using offline analysis: %s", err.kind.value, project.name, err)
        return analyze_offline(project)
    log.error("Analysis of %s failed (%s): %s", project.name, err.kind.value, err)
    raise err


async def submit_project(
    store: ProjectStore,
    project: ProjectInput,
    client: LLMClient | None = None,
    *,
    demo: bool = False,
) -> tuple[int, AnalysisResult]:
    """Store a project, analyze it and attach the recommendations.

    On a raised BackendError the project record stays without analysis.
    """
    record = store.create_project(project)
    result = await run_analysis(project, client, demo=demo)
    store.add_recommendations(record["id"], result.partners)
    analysis: dict[str, Any] = {"summary": result.summary, "partnersCount": len(result.partners)}
    if result.is_demo:
        analysis["isDemo"] = True
    store.update_project(record["id"], analysis_results=analysis)
    return record["id"], result


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------


def analysis_response(project_id: int, result: AnalysisResult) -> dict[str, Any]:
    """Shape an AnalysisResult for API/MCP callers (per-dimension scores nested)."""
    return {
        "project_id": project_id,
        "summary": result.summary,
        "is_demo": result.is_demo,
        "partners": [
            {
                "name": p.name, "type": p.type,
                "description": p.description, "reasoning": p.reasoning,
                "match_score": p.match_score,
                "scores": {
                    "mission": p.mission_score,
                    "technical": p.technical_score,
                    "strategic": p.strategic_score,
                },
                "community": p.community or None,
                "tvl": p.tvl or None,
            }
            for p in result.partners
        ],
    }


def project_detail(store: ProjectStore, project_id: int) -> dict[str, Any] | None:
    project = store.get_project(project_id)
    if project is None:
        return None
    return {"project": project, "recommendations": store.get_recommendations(project_id)}


def backend_error_payload(exc: BackendError) -> dict[str, Any]:
    """User-facing error body for a BackendError that reached the caller."""
    if exc.kind is BackendErrorKind.AUTH_INVALID:
        return {"message": "Invalid API key", "error": AUTH_HELP, "needs_api_key": True}
    return {"message": "Failed to analyze project", "error": str(exc), "needs_api_key": False}
