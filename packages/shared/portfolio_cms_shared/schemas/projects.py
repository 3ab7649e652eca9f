"""Project record, media plan and response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator

from .common import CamelModel, PlanKind, ThumbnailMode


# ---------------------------------------------------------------------------
# Payload (multipart "payload" field)
# ---------------------------------------------------------------------------

class IconEntry(CamelModel):
    class_: str = Field(alias="class")
    tooltip: str


class SharedFields(CamelModel):
    """Fields duplicated verbatim in every locale's copy of a record."""
    initial_date: str
    end_date: str
    project_url_link: str = ""
    linkedin_url_link: str = ""
    github_url_link: str = ""
    developed: bool
    developing_percentage: Union[int, float]
    compatibility: int
    icons: List[IconEntry]


class LocaleContent(CamelModel):
    title: str
    description: str


class MediaPlanEntry(CamelModel):
    """One gallery slot or the thumbnail: a new upload or a stored path."""
    kind: PlanKind
    file_id: Optional[str] = None
    path: Optional[str] = None


class ThumbnailConfig(CamelModel):
    mode: ThumbnailMode = ThumbnailMode.IMAGE
    logo_file_id: Optional[str] = None
    background_color: Optional[str] = None
    padding_percent: Optional[float] = None

    @field_validator("mode", mode="before")
    @classmethod
    def _default_mode(cls, value):
        return value or ThumbnailMode.IMAGE


class ProjectPayload(CamelModel):
    category: str
    asset_folder: str
    common: SharedFields
    locales: Dict[str, LocaleContent]
    gallery_plan: List[MediaPlanEntry]
    thumbnail_plan: MediaPlanEntry
    thumbnail_config: Optional[ThumbnailConfig] = None

    @property
    def thumbnail_mode(self) -> ThumbnailMode:
        if self.thumbnail_config is None:
            return ThumbnailMode.IMAGE
        return self.thumbnail_config.mode


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ProjectSummary(CamelModel):
    id: str
    category: str
    index: int
    title: str
    image: Optional[str] = None
    initial_date: Optional[str] = None
    end_date: Optional[str] = None
    developed: Optional[bool] = None
    compatibility: Optional[int] = None
    icons: List[Dict[str, Any]] = Field(default_factory=list)


class ProjectListResponse(CamelModel):
    lang: str
    total: int
    projects: List[ProjectSummary]


class ProjectDetail(CamelModel):
    id: str
    category: str
    index: int
    asset_folder: str
    common: Dict[str, Any]
    locales: Dict[str, Dict[str, Any]]
    image: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class ProjectMutationResult(CamelModel):
    message: str
    id: str
    category: str
    asset_folder: str


class ProjectDeleteResult(CamelModel):
    message: str
    id: str
    asset_folder: str
    removed_files: int = 0
    missing_files: int = 0
    removed_folder: bool = False
    remove_warnings: List[str] = Field(default_factory=list)


class ReorderRequest(CamelModel):
    category: str = ""
    ordered_ids: List[str] = Field(default_factory=list)


class ReorderResult(CamelModel):
    message: str
    category: str
    total: int


class MetaResponse(CamelModel):
    categories: List[str]
    known_icons: List[str]
    locales: List[str]
    schema_fields: List[str]
    portfolio_root: str
    files: Dict[str, str]
    image_dirs: Dict[str, str]
    missing_categories: Dict[str, List[str]] = Field(default_factory=dict)
