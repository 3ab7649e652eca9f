"""
Project service — list, read, create, update, delete and reorder records.

Every mutation is one read-modify-write cycle queued on the catalog store:
1. validate the payload (before queueing, no side effects)
2. read all locale catalogs and resolve the target record
3. materialize media (files on disk before any catalog change)
4. merge the record into every locale and write the catalogs
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import structlog
from pydantic import ValidationError

from portfolio_cms.core.config import Settings
from portfolio_cms.core.errors import (
    LocaleInconsistency,
    PortfolioError,
    RecordNotFound,
    ValidationFailed,
)
from portfolio_cms.core.sandbox import PathSandbox, normalize_relative_path
from portfolio_cms.services.catalog_store import CatalogStore
from portfolio_cms.services.media import MediaMaterializer, UploadedImage
from portfolio_cms.services.resolver import (
    assert_category_exists,
    assert_identifier_unique,
    iter_records,
    missing_categories,
    modal_slug,
    record_identifier,
    resolve_across_locales,
)
from portfolio_cms.services.sanitizer import sanitize_description
from portfolio_cms_shared.schemas.common import PROJECT_FIELD_ORDER, SHARED_FIELDS
from portfolio_cms_shared.schemas.projects import LocaleContent, ProjectPayload, SharedFields
from portfolio_cms_shared.validation import validate_project_payload

log = structlog.get_logger()

# Misspelled key written by earlier versions of the site; read, never written.
LEGACY_PERCENTAGE_KEY = "developingPorcentage"

ICON_ENTRY_RE = re.compile(r"^\s*([a-zA-Z0-9_-]+)\s*:\s*['\"]assets/icons/skills/", re.MULTILINE)


# ---------------------------------------------------------------------------
# Record helpers
# ---------------------------------------------------------------------------


def order_fields(record: Mapping[str, Any]) -> dict:
    """Known fields in their canonical order, unknown keys after them."""
    ordered = {name: record[name] for name in PROJECT_FIELD_ORDER if name in record}
    ordered.update((key, value) for key, value in record.items() if key not in ordered)
    return ordered


def shared_fields_of(record: Mapping[str, Any]) -> dict:
    values = {name: record.get(name) for name in SHARED_FIELDS}
    if values["developingPercentage"] is None and LEGACY_PERCENTAGE_KEY in record:
        values["developingPercentage"] = record[LEGACY_PERCENTAGE_KEY]
    if not isinstance(values["icons"], list):
        values["icons"] = []
    return values


def asset_paths_of(record: Mapping[str, Any]) -> list[str]:
    """Thumbnail and gallery paths of a record, normalized and de-duplicated."""
    paths = []
    candidates = [record.get("image")] + list(record.get("images") or [])
    for value in candidates:
        path = normalize_relative_path(value)
        if path and path not in paths:
            paths.append(path)
    return paths


def build_record(
    existing: Optional[Mapping[str, Any]],
    identifier: str,
    content: LocaleContent,
    common: SharedFields,
    thumbnail_path: str,
    gallery_paths: Iterable[str],
    allow_inline_style: bool = False,
) -> dict:
    """Merge submitted values over an existing record (or build a new one)."""
    record = dict(existing or {})
    record.pop(LEGACY_PERCENTAGE_KEY, None)
    record.update(
        {
            "id": identifier,
            "title": content.title.strip(),
            "description": sanitize_description(content.description, allow_inline_style),
            "image": thumbnail_path,
            "initialDate": common.initial_date.strip(),
            "endDate": common.end_date.strip(),
            "projectUrlLink": common.project_url_link.strip(),
            "linkedinUrlLink": common.linkedin_url_link.strip(),
            "githubUrlLink": common.github_url_link.strip(),
            "developed": common.developed,
            "developingPercentage": common.developing_percentage,
            "icons": [{"class": icon.class_.strip(), "tooltip": icon.tooltip.strip()} for icon in common.icons],
            "compatibility": common.compatibility,
            "images": list(gallery_paths),
        }
    )
    return order_fields(record)


def parse_payload(raw: Optional[str], locales: Iterable[str]) -> ProjectPayload:
    """Decode and validate the multipart `payload` field."""
    if not raw:
        raise ValidationFailed(['Missing payload. Send the "payload" field as multipart/form-data.'])
    try:
        data = json.loads(raw)
    except ValueError:
        raise ValidationFailed(['Invalid payload. The "payload" field must be valid JSON.'])

    violations = validate_project_payload(data, list(locales))
    if violations:
        raise ValidationFailed(violations)
    try:
        return ProjectPayload.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed([f'{".".join(str(p) for p in err["loc"])}: {err["msg"]}' for err in exc.errors()])


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ProjectService:
    def __init__(
        self,
        settings: Settings,
        sandbox: PathSandbox,
        store: CatalogStore,
        media: MediaMaterializer,
    ):
        self._settings = settings
        self._sandbox = sandbox
        self._store = store
        self._media = media

    @property
    def reference_locale(self) -> str:
        return self._settings.reference_locale

    @property
    def locales(self) -> list[str]:
        return self._store.locales

    def pick_locale(self, lang: Optional[str]) -> str:
        """Requested locale, or the reference locale when unknown."""
        return lang if lang in self.locales else self.reference_locale

    # --- Reads ---

    async def list_projects(
        self, lang: Optional[str] = None, category: Optional[str] = None, search: str = ""
    ) -> dict:
        locale = self.pick_locale(lang)
        catalog = await self._store.read_locale(locale)
        needle = (search or "").strip().lower()

        projects = []
        for location in iter_records(catalog):
            record = location.record
            title = str(record.get("title") or "")
            if category and category != "all" and location.category != category:
                continue
            if needle and not (
                needle in title.lower() or needle in location.identifier or needle in location.category.lower()
            ):
                continue
            projects.append(
                {
                    "id": location.identifier,
                    "category": location.category,
                    "index": location.index,
                    "title": title,
                    "image": record.get("image"),
                    "initial_date": record.get("initialDate"),
                    "end_date": record.get("endDate"),
                    "developed": record.get("developed"),
                    "compatibility": record.get("compatibility"),
                    "icons": record.get("icons") if isinstance(record.get("icons"), list) else [],
                }
            )
        return {"lang": locale, "total": len(projects), "projects": projects}

    async def get_project(self, identifier: str, lang: Optional[str] = None) -> dict:
        base_locale = self.pick_locale(lang)
        catalogs = await self._store.read_all()
        targets = resolve_across_locales(catalogs, identifier, base_locale)
        base = targets[base_locale]
        record = base.record
        return {
            "id": base.identifier,
            "category": base.category,
            "index": base.index,
            "asset_folder": self._media.infer_asset_folder(record),
            "common": shared_fields_of(record),
            "locales": {
                locale: {"title": target.record.get("title"), "description": target.record.get("description")}
                for locale, target in targets.items()
            },
            "image": record.get("image"),
            "images": list(record.get("images") or []),
        }

    async def known_icons(self) -> list[str]:
        path = self._sandbox.resolve(self._settings.icons_file_path)
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return []
        return sorted(set(ICON_ENTRY_RE.findall(content)))

    async def meta(self) -> dict:
        catalogs = await self._store.read_all()
        return {
            "categories": list(catalogs[self.reference_locale]),
            "known_icons": await self.known_icons(),
            "locales": self.locales,
            "schema_fields": list(PROJECT_FIELD_ORDER),
            "portfolio_root": str(self._sandbox.root),
            "files": self._store.files,
            "image_dirs": {"gallery_base": self._media.assets_dir, "thumbs": self._media.thumbs_dir},
            "missing_categories": missing_categories(catalogs),
        }

    # --- Mutations ---

    async def create_project(self, raw_payload: Optional[str], uploads: Mapping[str, UploadedImage]) -> dict:
        payload = parse_payload(raw_payload, self.locales)

        async def mutation() -> dict:
            catalogs = await self._store.read_all()
            assert_category_exists(catalogs, payload.category)
            identifier = modal_slug(payload.locales[self.reference_locale].title)
            if not identifier:
                raise ValidationFailed(["The title does not produce a usable identifier."])
            assert_identifier_unique(catalogs, identifier)

            media = await self._media.materialize(payload, uploads, allow_existing=False)

            for locale in self.locales:
                catalogs[locale][payload.category].append(
                    build_record(
                        None,
                        identifier,
                        payload.locales[locale],
                        payload.common,
                        media.thumbnail_path,
                        media.gallery_paths,
                        self._settings.enable_inline_style,
                    )
                )
            await self._store.write_all(catalogs)
            log.info("project.created", id=identifier, category=payload.category, asset_folder=media.asset_folder)
            return {
                "message": "Project created.",
                "id": identifier,
                "category": payload.category,
                "asset_folder": media.asset_folder,
            }

        return await self._store.submit(mutation)

    async def update_project(
        self,
        identifier: str,
        raw_payload: Optional[str],
        uploads: Mapping[str, UploadedImage],
        lang: Optional[str] = None,
    ) -> dict:
        payload = parse_payload(raw_payload, self.locales)
        base_locale = self.pick_locale(lang)

        async def mutation() -> dict:
            catalogs = await self._store.read_all()
            targets = resolve_across_locales(catalogs, identifier, base_locale)
            assert_category_exists(catalogs, payload.category)

            # Ids never follow title edits; legacy records get theirs pinned here.
            pinned = record_identifier(targets[self.reference_locale].record)
            assert_identifier_unique(catalogs, pinned, exclude=targets)

            current_thumbnail = targets[base_locale].record.get("image")
            media = await self._media.materialize(
                payload,
                uploads,
                allow_existing=True,
                replaceable=[current_thumbnail] if current_thumbnail else (),
            )

            for locale in self.locales:
                target = targets[locale]
                updated = build_record(
                    target.record,
                    pinned,
                    payload.locales[locale],
                    payload.common,
                    media.thumbnail_path,
                    media.gallery_paths,
                    self._settings.enable_inline_style,
                )
                if target.category != payload.category:
                    del catalogs[locale][target.category][target.index]
                    catalogs[locale][payload.category].append(updated)
                else:
                    catalogs[locale][target.category][target.index] = updated

            await self._store.write_all(catalogs)
            log.info("project.updated", id=pinned, category=payload.category, asset_folder=media.asset_folder)
            return {
                "message": "Project updated.",
                "id": pinned,
                "category": payload.category,
                "asset_folder": media.asset_folder,
            }

        return await self._store.submit(mutation)

    async def delete_project(self, identifier: str, lang: Optional[str] = None) -> dict:
        base_locale = self.pick_locale(lang)

        async def mutation() -> dict:
            catalogs = await self._store.read_all()
            targets = resolve_across_locales(catalogs, identifier, base_locale)
            base_record = targets[base_locale].record
            removed_id = record_identifier(base_record)
            asset_folder = self._media.infer_asset_folder(base_record)

            referenced: list[str] = []
            for target in targets.values():
                referenced.extend(p for p in asset_paths_of(target.record) if p not in referenced)

            for locale, target in targets.items():
                del catalogs[locale][target.category][target.index]
            await self._store.write_all(catalogs)

            surviving = {
                path
                for catalog in catalogs.values()
                for location in iter_records(catalog)
                for path in asset_paths_of(location.record)
            }
            result = {
                "message": "Project deleted.",
                "id": removed_id,
                "asset_folder": asset_folder,
                "removed_files": 0,
                "missing_files": 0,
                "removed_folder": False,
                "remove_warnings": [],
            }
            # Catalogs are already written: file problems are reported, not raised.
            for path in referenced:
                if path in surviving:
                    continue
                try:
                    if self._media.remove_file(path):
                        result["removed_files"] += 1
                    else:
                        result["missing_files"] += 1
                except (PortfolioError, OSError) as exc:
                    result["remove_warnings"].append(f'Could not remove file "{path}": {exc}')
            try:
                result["removed_folder"] = self._media.remove_folder_if_empty(asset_folder)
            except (PortfolioError, OSError) as exc:
                result["remove_warnings"].append(f'Could not remove folder "{asset_folder}": {exc}')

            if result["remove_warnings"]:
                log.warning("project.asset_cleanup_incomplete", id=removed_id, warnings=result["remove_warnings"])
            log.info(
                "project.deleted",
                id=removed_id,
                removed_files=result["removed_files"],
                missing_files=result["missing_files"],
                removed_folder=result["removed_folder"],
            )
            return result

        return await self._store.submit(mutation)

    async def reorder(self, category: str, ordered_ids: Iterable[str], lang: Optional[str] = None) -> dict:
        base_locale = self.pick_locale(lang)
        category = (category or "").strip()
        wanted = [modal_slug(value) for value in ordered_ids or []]
        wanted = [value for value in wanted if value]
        if not category:
            raise ValidationFailed(['Field "category" is required to reorder.'])
        if not wanted:
            raise ValidationFailed(['Field "orderedIds" must list the complete order.'])

        async def mutation() -> dict:
            catalogs = await self._store.read_all()
            assert_category_exists(catalogs, category)
            base_list = catalogs[base_locale][category]
            if not base_list:
                raise ValidationFailed([f'Category "{category}" has no projects to reorder.'])

            current = [record_identifier(record) for record in base_list]
            position = {value: index for index, value in enumerate(current)}
            if len(set(current)) != len(current):
                raise LocaleInconsistency(
                    f'Category "{category}" holds projects that share an id; edit them before reordering.'
                )
            if len(wanted) != len(current):
                raise ValidationFailed(["The submitted order does not match the number of projects in the category."])
            seen: set[str] = set()
            for value in wanted:
                if value in seen:
                    raise ValidationFailed([f'Duplicate id in reorder: "{value}".'])
                seen.add(value)
            for value in current:
                if value not in seen:
                    raise ValidationFailed([f'The submitted order is incomplete. Missing id: "{value}".'])
            for value in wanted:
                if value not in position:
                    raise ValidationFailed([f'Unknown id in reorder: "{value}".'])

            for locale in self.locales:
                if len(catalogs[locale][category]) != len(base_list):
                    raise LocaleInconsistency(
                        f'Category "{category}" has a different number of projects in locale "{locale}".'
                    )

            order = [position[value] for value in wanted]
            for locale in self.locales:
                records = catalogs[locale][category]
                catalogs[locale][category] = [records[index] for index in order]

            await self._store.write_all(catalogs)
            log.info("project.reordered", category=category, total=len(order))
            return {"message": f'Order of category "{category}" updated.', "category": category, "total": len(order)}

        return await self._store.submit(mutation)

    # --- Images ---

    def image_file(self, relative_path: Optional[str]) -> Path:
        """Absolute path of a stored image for the editor preview."""
        absolute = self._sandbox.resolve(normalize_relative_path(relative_path))
        if not self._media.holds_image(absolute):
            raise ValidationFailed(["Invalid image path."])
        if not absolute.is_file():
            raise RecordNotFound("Image not found.")
        return absolute
