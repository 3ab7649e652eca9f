"""
Project endpoints: list, detail, create, update, delete, reorder.

Create and update are multipart requests:
- `payload`: JSON document (category, assetFolder, common, locales, media plan)
- `galleryFiles` / `thumbnailFiles`: image parts named `<fileId>__<originalName>`
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from portfolio_cms.api.deps import get_app_settings, get_project_service
from portfolio_cms.core.config import Settings
from portfolio_cms.services.media import UploadedImage, collect_uploads
from portfolio_cms.services.projects import ProjectService
from portfolio_cms_shared.schemas.projects import (
    ProjectDeleteResult,
    ProjectDetail,
    ProjectListResponse,
    ProjectMutationResult,
    ReorderRequest,
    ReorderResult,
)

router = APIRouter()


async def _read_uploads(files: List[UploadFile], settings: Settings) -> dict[str, UploadedImage]:
    parts = []
    for upload in files:
        parts.append((upload.filename or "", upload.content_type or "", await upload.read()))
    return collect_uploads(parts, settings.max_upload_files, settings.max_file_size_bytes)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    lang: Optional[str] = None,
    category: Optional[str] = None,
    search: str = "",
    service: ProjectService = Depends(get_project_service),
):
    """List project summaries of one locale, optionally filtered."""
    return await service.list_projects(lang, category, search)


@router.post("/reorder", response_model=ReorderResult)
async def reorder_projects(
    body: ReorderRequest,
    lang: Optional[str] = None,
    service: ProjectService = Depends(get_project_service),
):
    """Apply a complete new order to one category in every locale."""
    return await service.reorder(body.category, body.ordered_ids, lang)


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: str,
    lang: Optional[str] = None,
    service: ProjectService = Depends(get_project_service),
):
    return await service.get_project(project_id, lang)


@router.post("", response_model=ProjectMutationResult, status_code=201)
async def create_project(
    payload: Optional[str] = Form(None),
    gallery_files: Optional[List[UploadFile]] = File(None, alias="galleryFiles"),
    thumbnail_files: Optional[List[UploadFile]] = File(None, alias="thumbnailFiles"),
    settings: Settings = Depends(get_app_settings),
    service: ProjectService = Depends(get_project_service),
):
    """Create a project in every locale and write its images."""
    uploads = await _read_uploads((gallery_files or []) + (thumbnail_files or []), settings)
    return await service.create_project(payload, uploads)


@router.put("/{project_id}", response_model=ProjectMutationResult)
async def update_project(
    project_id: str,
    lang: Optional[str] = Query(None),
    payload: Optional[str] = Form(None),
    gallery_files: Optional[List[UploadFile]] = File(None, alias="galleryFiles"),
    thumbnail_files: Optional[List[UploadFile]] = File(None, alias="thumbnailFiles"),
    settings: Settings = Depends(get_app_settings),
    service: ProjectService = Depends(get_project_service),
):
    """Update a project in place; a category change moves it to the end of the new list."""
    uploads = await _read_uploads((gallery_files or []) + (thumbnail_files or []), settings)
    return await service.update_project(project_id, payload, uploads, lang)


@router.delete("/{project_id}", response_model=ProjectDeleteResult)
async def delete_project(
    project_id: str,
    lang: Optional[str] = None,
    service: ProjectService = Depends(get_project_service),
):
    """Remove a project from every locale and delete the images only it used."""
    return await service.delete_project(project_id, lang)
