import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import Context, FastMCP
from pydantic import ValidationError

from ecosync import services
from ecosync.analyzer import BackendError
from ecosync.schemas import AnalyzeResponse, ProjectDetail, ProjectInput
from ecosync.store import ProjectStore

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def ecosync_lifespan(server: FastMCP) -> AsyncIterator[ProjectStore]:
    """Open the project store for the life of the server; tools reach it through their Context."""
    yield ProjectStore.from_url()


mcp = FastMCP(
    "Ecosync",
    instructions=(
        "Ecosync recommends Web3 ecosystem partners for a founder's project. "
        "Call analyze_project() with the project's name, description (50+ characters), "
        "development stage, funding stage and categories. Use analyze_project_demo() "
        "when no API key is configured, and get_project(id) to revisit a result."
    ),
    lifespan=ecosync_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_store(ctx: Context) -> ProjectStore:
    return ctx.request_context.lifespan_context


def _backend_error(exc: Exception) -> dict:
    """Error dict for a failed analysis. Only BackendError can carry needs_api_key."""
    if isinstance(exc, BackendError):
        payload = services.backend_error_payload(exc)
        return {
            "error": f"{payload['message']}: {payload['error']}",
            "error_code": exc.kind.value.upper(),
            "needs_api_key": payload["needs_api_key"],
        }
    return {"error": f"Analysis failed: {exc}", "error_code": "UNKNOWN", "needs_api_key": False}


def _project_input(
    name: str, description: str, stage: str, funding_stage: str, categories: list[str],
) -> tuple[ProjectInput | None, dict | None]:
    try:
        return ProjectInput(
            name=name, description=description, stage=stage,
            funding_stage=funding_stage, categories=categories,
        ), None
    except ValidationError as exc:
        return None, {"error": "Invalid request data", "details": exc.errors(include_url=False)}


async def _analyze(store: ProjectStore, project: ProjectInput, demo: bool) -> dict:
    try:
        project_id, result = await services.submit_project(store, project, demo=demo)
    except BackendError as exc:
        return _backend_error(exc)
    response = services.analysis_response(project_id, result)
    return AnalyzeResponse.model_validate(response).model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("ecosync://overview")
def ecosync_overview() -> str:
    """Overview of Ecosync: inputs, scoring dimensions, and demo mode."""
    return json.dumps({
        "system": "Ecosync: Web3 partner recommendations",
        "input": {
            "name": "Project name (required)",
            "description": "What the project does (at least 50 characters)",
            "stage": "Development stage, e.g. Idea, MVP, Beta, Live",
            "funding_stage": "Funding stage, e.g. Bootstrapped, Pre-seed, Seed",
            "categories": "One or more tags, e.g. DeFi, NFT/Gaming, DAO/Governance, Social/Creator",
        },
        "output": "A summary plus exactly five partners with matchScore and mission/technical/strategic scores (1-100).",
        "dimensions": {
            "mission": "How closely the partner's goals match the project's.",
            "technical": "Whether the technologies complement each other.",
            "strategic": "Community, funding and market-expansion upside.",
        },
        "demo_mode": (
            "When the LLM backend is over quota, times out or returns unusable output, "
            "results come from a fixed partner catalog and carry isDemo=true. "
            "A missing or invalid API key is reported as an error instead."
        ),
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def analyze_project(
    name: str, description: str, stage: str, funding_stage: str, categories: list[str],
    ctx: Context,
) -> dict:
    """Recommend five partners for a project using the LLM backend. Requires OPENAI_API_KEY.

    Args:
        name: Project name.
        description: What the project does, at least 50 characters.
        stage: Development stage.
        funding_stage: Funding stage.
        categories: Category tags, e.g. ["DeFi", "DAO/Governance"].
    """
    project, err = _project_input(name, description, stage, funding_stage, categories)
    if err:
        return err
    return await _analyze(_get_store(ctx), project, demo=False)


@mcp.tool()
async def analyze_project_demo(
    name: str, description: str, stage: str, funding_stage: str, categories: list[str],
    ctx: Context,
) -> dict:
    """Recommend five partners from the offline catalog. No API key needed."""
    project, err = _project_input(name, description, stage, funding_stage, categories)
    if err:
        return err
    return await _analyze(_get_store(ctx), project, demo=True)


@mcp.tool()
def get_project(project_id: int, ctx: Context) -> dict:
    """Get a previously analyzed project with its partner recommendations."""
    detail = services.project_detail(_get_store(ctx), project_id)
    if detail is None:
        return {"error": f"Project {project_id} not found"}
    return ProjectDetail.model_validate(detail).model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the Ecosync MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
