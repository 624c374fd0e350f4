from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from ecosync import services
from ecosync.analyzer import BackendError, BackendErrorKind
from ecosync.schemas import AnalyzeResponse, ProjectDetail, ProjectInput
from ecosync.store import ProjectStore

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "store", None) is None:
        app.state.store = ProjectStore.from_url()
    yield


app = FastAPI(
    title="Ecosync",
    version="0.1.0",
    description=(
        "Partner analysis API for Web3 founders. Submit a project and receive five "
        "partner candidates scored on mission alignment, technical synergy, and "
        "strategic value. All endpoints return JSON. No authentication required."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Analysis", "description": "LLM-powered partner analysis. Requires OPENAI_API_KEY."},
        {"name": "Projects", "description": "Look up submitted projects and their recommendations."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def get_store(request: Request) -> ProjectStore:
    return request.app.state.store


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
    payload = services.backend_error_payload(exc)
    body = {"message": payload["message"], "error": payload["error"]}
    if exc.kind is BackendErrorKind.AUTH_INVALID:
        body["needsApiKey"] = True
        return JSONResponse(status_code=401, content=body)
    return JSONResponse(status_code=502, content=body)


# ---------------------------------------------------------------------------
# Routes: Analysis
# ---------------------------------------------------------------------------


@app.post("/api/analyze", response_model=AnalyzeResponse,
          tags=["Analysis"], summary="Analyze a project and recommend five partners")
async def analyze(body: ProjectInput, store: ProjectStore = Depends(get_store)):
    project_id, result = await services.submit_project(store, body)
    return services.analysis_response(project_id, result)


@app.post("/api/analyze-demo", response_model=AnalyzeResponse,
          tags=["Analysis"], summary="Analyze a project with the offline catalog (no API key needed)")
async def analyze_demo(body: ProjectInput, store: ProjectStore = Depends(get_store)):
    project_id, result = await services.submit_project(store, body, demo=True)
    return services.analysis_response(project_id, result)


# ---------------------------------------------------------------------------
# Routes: Projects
# ---------------------------------------------------------------------------


@app.get("/api/projects/{project_id}", response_model=ProjectDetail,
         tags=["Projects"], summary="Get a project with its partner recommendations")
async def get_project(project_id: int, store: ProjectStore = Depends(get_store)):
    detail = services.project_detail(store, project_id)
    if detail is None:
        raise HTTPException(404, "Project not found")
    return detail


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run("ecosync.app:app", host="127.0.0.1", port=8001, reload=True)


if __name__ == "__main__":
    main()
