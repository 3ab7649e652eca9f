"""
Editor support endpoints: health, catalog metadata, image preview.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from portfolio_cms.api.deps import get_app_settings, get_project_service
from portfolio_cms.core.config import Settings
from portfolio_cms.services.projects import ProjectService
from portfolio_cms_shared.schemas.projects import MetaResponse

router = APIRouter()


@router.get("/health")
async def health(settings: Settings = Depends(get_app_settings)):
    """Liveness probe; also reports the portfolio root in use."""
    return {"ok": True, "root": str(settings.portfolio_root)}


@router.get("/meta", response_model=MetaResponse)
async def meta(service: ProjectService = Depends(get_project_service)):
    """Categories, known icons, field order and a category-alignment report."""
    return await service.meta()


@router.get("/image")
async def image(path: str = "", service: ProjectService = Depends(get_project_service)):
    return FileResponse(service.image_file(path))
