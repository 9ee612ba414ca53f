"""
Inspection API routes.
"""

from typing import Any
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...core.errors import InvalidTargetError, PageFetchError
from ...utils.log import log
from ...utils.urls import build_force_variation_url, validate_target_url


router = APIRouter()


class InspectRequest(BaseModel):
    url: str
    api_token: str | None = None


class ProjectRequest(BaseModel):
    identifier: str
    api_token: str | None = None


class ForceVariationRequest(BaseModel):
    url: str
    experiment_id: str
    variation_id: str


@router.post("")
async def inspect_page(body: InspectRequest, req: Request) -> Any:
    """
    Inspect a page.

    Returns:
    - Optimizely configuration (experiments, audiences, pages, events, provenance, errors)
    - Shopify state, GA4 measurement ids and GTM containers
    - Analytics network requests and a screenshot
    """
    service = req.app.state.inspection_service
    if service is None:
        raise HTTPException(status_code=500, detail="Inspection service not initialized")

    try:
        report = await service.inspect(body.url, api_token=body.api_token)
    except InvalidTargetError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except PageFetchError as e:
        log("api", f"Inspection failed for {body.url}: {e.message}")
        return JSONResponse(status_code=500, content={"success": False, "error": e.message})

    return report.model_dump(mode="json")


@router.post("/project")
async def inspect_project(body: ProjectRequest, req: Request) -> dict[str, Any]:
    """Resolve a project by identifier without rendering a page."""
    service = req.app.state.inspection_service
    if service is None:
        raise HTTPException(status_code=500, detail="Inspection service not initialized")

    try:
        config = await service.inspect_project(body.identifier, api_token=body.api_token)
    except InvalidTargetError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "success": True,
        "optimizely": config.model_dump(mode="json"),
        "running_experiment_ids": [e.id for e in config.running_experiments()],
    }


@router.post("/force-variation")
async def force_variation(body: ForceVariationRequest) -> dict[str, str]:
    """Build a URL that forces the visitor into a variation."""
    try:
        page_url = validate_target_url(body.url)
    except InvalidTargetError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {"url": build_force_variation_url(page_url, body.experiment_id, body.variation_id)}
