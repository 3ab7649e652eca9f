"""
Media materialization: media plan + uploads -> files in the asset tree.

For one create/update request:
- every `new` entry is decoded and re-encoded (concurrently) before any
  file is written, so a bad upload aborts with nothing on disk
- `existing` entries must point at a file inside the assets root
- gallery files are named `<folder><n>.<ext>`, scanning upward from 1 for
  the first free number
- the thumbnail keeps a single canonical name, `<folder>.<ext>`, with a
  `-2`, `-3`, ... suffix only when an unrelated file already holds it

The caller writes the catalogs only after `materialize` returns.
"""

from __future__ import annotations

import asyncio
import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Collection, Iterable, Mapping, Optional

import structlog
from slugify import slugify

from portfolio_cms.core.config import Settings
from portfolio_cms.core.errors import MissingAsset, ValidationFailed
from portfolio_cms.core.sandbox import PathSandbox, join_relative, normalize_relative_path
from portfolio_cms.services import imaging
from portfolio_cms_shared.schemas.common import PlanKind, ThumbnailMode
from portfolio_cms_shared.schemas.projects import MediaPlanEntry, ProjectPayload

log = structlog.get_logger()

DEFAULT_ASSET_FOLDER = "project"
TAG_SEPARATOR = "__"


# ---------------------------------------------------------------------------
# Upload intake
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UploadedImage:
    file_id: str
    original_name: str
    content_type: str
    data: bytes = field(repr=False)


def parse_tagged_filename(filename: str) -> tuple[Optional[str], str]:
    """`<fileId>__<originalName>` -> (fileId, originalName); untagged -> (None, name)."""
    index = filename.find(TAG_SEPARATOR)
    if index <= 0:
        return None, filename
    return filename[:index], filename[index + len(TAG_SEPARATOR):]


def collect_uploads(
    parts: Iterable[tuple[str, str, bytes]],
    max_files: int,
    max_bytes: int,
) -> dict[str, UploadedImage]:
    """Index uploaded parts (filename, content type, bytes) by client file id."""
    parts = list(parts)
    if len(parts) > max_files:
        raise ValidationFailed([f"Too many files: at most {max_files} uploads per request."])

    uploads: dict[str, UploadedImage] = {}
    for filename, content_type, data in parts:
        filename = filename or ""
        if not (content_type or "").startswith("image/"):
            raise ValidationFailed([f'File "{filename}" is not a valid image.'])
        if len(data) > max_bytes:
            raise ValidationFailed([f'File "{filename}" exceeds the {max_bytes // (1024 * 1024)} MB limit.'])
        file_id, original_name = parse_tagged_filename(filename)
        if not file_id:
            raise ValidationFailed([f'File "{filename}" has no internal identifier. Upload it again.'])
        if file_id in uploads:
            raise ValidationFailed([f'Duplicate file for id "{file_id}".'])
        uploads[file_id] = UploadedImage(file_id, original_name, content_type, data)
    return uploads


def asset_folder_token(value: object, fallback: str = DEFAULT_ASSET_FOLDER) -> str:
    """Filesystem-safe lowercase slug of user input."""
    return slugify(str(value or ""), lowercase=True) or fallback


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------


@dataclass
class MaterializedMedia:
    gallery_paths: list[str]
    thumbnail_path: str
    asset_folder: str


class MediaMaterializer:
    """Owns asset files under the projects assets directory."""

    def __init__(self, sandbox: PathSandbox, settings: Settings):
        self._sandbox = sandbox
        self._settings = settings
        self.assets_dir = normalize_relative_path(settings.projects_assets_dir).rstrip("/")
        self.thumbs_dir = normalize_relative_path(settings.projects_thumbs_dir).rstrip("/")
        self._assets = sandbox.child(self.assets_dir)
        self._thumbs = sandbox.child(self.thumbs_dir)

    @property
    def reserved_folder(self) -> str:
        return posixpath.basename(self.thumbs_dir)

    def gallery_dir(self, asset_folder: str) -> str:
        return join_relative(self.assets_dir, asset_folder)

    def resolve_asset(self, relative_path: str) -> Path:
        """Resolve a stored reference, requiring it to live under the assets root."""
        absolute = self._sandbox.resolve(normalize_relative_path(relative_path))
        return self._assets.check(absolute)

    def holds_image(self, absolute: Path) -> bool:
        """Whether `absolute` lies under the gallery or thumbnail directory."""
        return self._assets.contains(absolute) or self._thumbs.contains(absolute)

    def infer_asset_folder(self, record: Mapping) -> str:
        """Gallery folder of a stored record, from its image paths or its title."""
        candidates = [record.get("image")] + list(record.get("images") or [])
        prefix = self.assets_dir + "/"
        for value in candidates:
            path = normalize_relative_path(value)
            if not path.startswith(prefix):
                continue
            segments = path[len(prefix):].split("/")
            if len(segments) > 1 and segments[0] and segments[0] != self.reserved_folder:
                return segments[0]
        return asset_folder_token(record.get("title"))

    # --- Plan execution ---

    def _existing(self, entry: MediaPlanEntry, allow_existing: bool, label: str) -> str:
        if not allow_existing:
            raise ValidationFailed([f"{label} may only reference stored files when editing a project."])
        absolute = self.resolve_asset(entry.path or "")
        if not absolute.is_file():
            raise MissingAsset(f"Image file not found: {normalize_relative_path(entry.path)}")
        return self._sandbox.relative(absolute)

    @staticmethod
    def _upload_for(uploads: Mapping[str, UploadedImage], file_id: Optional[str], label: str) -> UploadedImage:
        upload = uploads.get(file_id or "")
        if upload is None:
            raise ValidationFailed([f'File for {label} fileId "{file_id}" was not uploaded.'])
        return upload

    async def materialize(
        self,
        payload: ProjectPayload,
        uploads: Mapping[str, UploadedImage],
        *,
        allow_existing: bool,
        replaceable: Collection[str] = (),
    ) -> MaterializedMedia:
        """Write every new image of the plan and return canonical paths.

        `replaceable` lists paths owned by the record being edited; the new
        thumbnail may overwrite one of them instead of taking a suffix.
        """
        settings = self._settings
        folder = asset_folder_token(payload.asset_folder)
        if folder == self.reserved_folder:
            raise ValidationFailed([f'assetFolder "{folder}" is reserved.'])
        gallery_dir = self.gallery_dir(folder)
        self._assets.check(self._sandbox.resolve(gallery_dir))

        # 1. Check references and collect work before touching the disk
        gallery: list[tuple[str, object]] = []
        for index, entry in enumerate(payload.gallery_plan):
            label = f"galleryPlan[{index}]"
            if entry.kind == PlanKind.EXISTING:
                gallery.append(("existing", self._existing(entry, allow_existing, label)))
            else:
                gallery.append(("new", self._upload_for(uploads, entry.file_id, "gallery")))

        thumb_plan = payload.thumbnail_plan
        thumbnail_path: Optional[str] = None
        thumb_upload: Optional[UploadedImage] = None
        if thumb_plan.kind == PlanKind.EXISTING:
            thumbnail_path = self._existing(thumb_plan, allow_existing, "thumbnailPlan")
        else:
            file_id = thumb_plan.file_id
            config = payload.thumbnail_config
            if payload.thumbnail_mode == ThumbnailMode.LOGO_COLOR and config and config.logo_file_id:
                file_id = config.logo_file_id
            thumb_upload = self._upload_for(uploads, file_id, "thumbnail")

        # 2. Decode and re-encode every new image; any failure aborts here
        fmt, quality = settings.image_format, settings.image_quality
        jobs = [
            asyncio.to_thread(imaging.fit_to_width, item.data, settings.gallery_max_width, fmt, quality)
            for kind, item in gallery
            if kind == "new"
        ]
        if thumb_upload is not None:
            jobs.append(asyncio.to_thread(self._render_thumbnail, payload, thumb_upload.data))
        rendered = await asyncio.gather(*jobs)
        thumb_bytes = rendered.pop() if thumb_upload is not None else None

        # 3. Write files in plan order
        gallery_paths: list[str] = []
        next_number = 1
        encoded = iter(rendered)
        for kind, item in gallery:
            if kind == "existing":
                gallery_paths.append(item)
                continue
            path, next_number = await self._save_numbered(gallery_dir, folder, next_number, next(encoded))
            gallery_paths.append(path)
            log.info("media.gallery_saved", path=path, file_id=item.file_id)

        if thumb_bytes is not None:
            thumbnail_path = await self._save_thumbnail(folder, thumb_bytes, replaceable)
            log.info("media.thumbnail_saved", path=thumbnail_path, mode=payload.thumbnail_mode.value)

        return MaterializedMedia(gallery_paths, thumbnail_path or "", folder)

    def _render_thumbnail(self, payload: ProjectPayload, data: bytes) -> bytes:
        settings = self._settings
        width, height = settings.thumb_target_width, settings.thumb_target_height
        if payload.thumbnail_mode == ThumbnailMode.LOGO_COLOR:
            config = payload.thumbnail_config
            padding = config.padding_percent if config.padding_percent is not None else settings.logo_padding_percent
            return imaging.logo_on_background(
                data,
                width,
                height,
                background=imaging.normalize_hex_color(config.background_color, settings.logo_background_color),
                padding_percent=padding,
                fmt=settings.image_format,
                quality=settings.image_quality,
            )
        return imaging.cover_thumbnail(data, width, height, settings.image_format, settings.image_quality)

    # --- Naming and writing ---

    async def _save_numbered(self, directory: str, base: str, start: int, data: bytes) -> tuple[str, int]:
        ext = self._settings.image_extension
        number = start
        while True:
            candidate = join_relative(directory, f"{base}{number}{ext}")
            absolute = self._sandbox.resolve(candidate)
            if not absolute.exists():
                break
            number += 1
        await asyncio.to_thread(_write_bytes, absolute, data)
        return candidate, number + 1

    async def _save_thumbnail(self, base: str, data: bytes, replaceable: Collection[str]) -> str:
        ext = self._settings.image_extension
        owned = {normalize_relative_path(p) for p in replaceable}
        attempt = 1
        while True:
            suffix = "" if attempt == 1 else f"-{attempt}"
            candidate = join_relative(self.thumbs_dir, f"{base}{suffix}{ext}")
            absolute = self._sandbox.resolve(candidate)
            if candidate in owned or not absolute.exists():
                break
            attempt += 1
        await asyncio.to_thread(_write_bytes, absolute, data)
        return candidate

    # --- Removal ---

    def remove_file(self, relative_path: str) -> bool:
        """Delete one asset file; False when it was already gone."""
        absolute = self.resolve_asset(relative_path)
        if not absolute.is_file():
            return False
        absolute.unlink()
        return True

    def remove_folder_if_empty(self, asset_folder: str) -> bool:
        if not asset_folder or asset_folder == self.reserved_folder:
            return False
        absolute = self.resolve_asset(self.gallery_dir(asset_folder))
        if absolute == self._assets.root or not absolute.is_dir() or any(absolute.iterdir()):
            return False
        absolute.rmdir()
        return True


def _write_bytes(path: Path, data: bytes) -> None:
    os.makedirs(path.parent, exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
