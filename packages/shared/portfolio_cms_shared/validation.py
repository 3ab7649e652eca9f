"""
Shape and business-rule validation for project create/update payloads.

`validate_project_payload` is pure: it inspects the decoded JSON and returns
every violation it finds, each tagged with the rule that produced it. An
empty list means the payload can be loaded into `ProjectPayload` and acted
on. Nothing here raises for bad input.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Sequence

from .schemas.common import LOCALES, PlanKind, ThumbnailMode

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
URL_PREFIX_RE = re.compile(r"^https?://", re.IGNORECASE)

MAX_LOGO_PADDING_PERCENT = 40
URL_FIELDS = ("projectUrlLink", "linkedinUrlLink", "githubUrlLink")


class ViolationCode(str, Enum):
    PAYLOAD_NOT_OBJECT = "payload_not_object"
    MISSING_FIELD = "missing_field"
    EMPTY_GALLERY_PLAN = "empty_gallery_plan"
    MISSING_DATE = "missing_date"
    INVALID_URL = "invalid_url"
    INVALID_DEVELOPED = "invalid_developed"
    INVALID_PERCENTAGE = "invalid_percentage"
    INVALID_COMPATIBILITY = "invalid_compatibility"
    EMPTY_ICONS = "empty_icons"
    INVALID_ICON = "invalid_icon"
    MISSING_LOCALE = "missing_locale"
    MISSING_TITLE = "missing_title"
    MISSING_DESCRIPTION = "missing_description"
    INVALID_PLAN_ENTRY = "invalid_plan_entry"
    INVALID_THUMBNAIL_CONFIG = "invalid_thumbnail_config"
    INVALID_THUMBNAIL_MODE = "invalid_thumbnail_mode"
    INVALID_BACKGROUND_COLOR = "invalid_background_color"
    INVALID_PADDING = "invalid_padding"


@dataclass(frozen=True)
class Violation:
    code: ViolationCode
    field: str
    message: str

    def __str__(self) -> str:
        return self.message


def is_likely_url(value: Any) -> bool:
    """Empty strings pass; anything else must start with http:// or https://."""
    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    if not trimmed:
        return True
    return bool(URL_PREFIX_RE.match(trimmed))


def is_hex_color(value: Any) -> bool:
    return isinstance(value, str) and bool(HEX_COLOR_RE.match(value.strip()))


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON true/false are never numbers here.
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    # Python ints are exact and unbounded; only floats can be inf or nan.
    return _is_number(value) and (isinstance(value, int) or math.isfinite(value))


def _as_compatibility(value: Any) -> int | None:
    if _is_number(value) and (isinstance(value, int) or value.is_integer()):
        return int(value)
    if isinstance(value, str):
        digits = value.strip()
        if digits.isdecimal() and len(digits) <= 3:
            return int(digits)
    return None


# ---------------------------------------------------------------------------
# Rule groups
# ---------------------------------------------------------------------------


def _check_top_level(payload: dict) -> List[Violation]:
    violations = []
    if not _non_empty_str(payload.get("category")):
        violations.append(Violation(ViolationCode.MISSING_FIELD, "category", 'Field "category" is required.'))
    if not _non_empty_str(payload.get("assetFolder")):
        violations.append(
            Violation(ViolationCode.MISSING_FIELD, "assetFolder", 'Field "assetFolder" is required.')
        )
    if not isinstance(payload.get("common"), dict):
        violations.append(Violation(ViolationCode.MISSING_FIELD, "common", 'Field "common" is required.'))
    if not isinstance(payload.get("locales"), dict):
        violations.append(Violation(ViolationCode.MISSING_FIELD, "locales", 'Field "locales" is required.'))
    gallery = payload.get("galleryPlan")
    if not isinstance(gallery, list) or not gallery:
        violations.append(
            Violation(
                ViolationCode.EMPTY_GALLERY_PLAN,
                "galleryPlan",
                'Field "galleryPlan" must contain at least 1 image.',
            )
        )
    if not isinstance(payload.get("thumbnailPlan"), dict):
        violations.append(
            Violation(ViolationCode.MISSING_FIELD, "thumbnailPlan", 'Field "thumbnailPlan" is required.')
        )
    return violations


def _check_common(common: dict) -> List[Violation]:
    violations = []
    for name in ("initialDate", "endDate"):
        if not _non_empty_str(common.get(name)):
            violations.append(Violation(ViolationCode.MISSING_DATE, f"common.{name}", f'Field "{name}" is required.'))

    for name in URL_FIELDS:
        if not is_likely_url(common.get(name)):
            violations.append(
                Violation(
                    ViolationCode.INVALID_URL,
                    f"common.{name}",
                    f'Field "{name}" must be empty or a URL starting with http(s).',
                )
            )

    if not isinstance(common.get("developed"), bool):
        violations.append(
            Violation(ViolationCode.INVALID_DEVELOPED, "common.developed", 'Field "developed" must be a boolean.')
        )

    percentage = common.get("developingPercentage")
    if not (_is_finite_number(percentage) and 0 <= percentage <= 100):
        violations.append(
            Violation(
                ViolationCode.INVALID_PERCENTAGE,
                "common.developingPercentage",
                'Field "developingPercentage" must be a number between 0 and 100.',
            )
        )

    if _as_compatibility(common.get("compatibility")) not in (1, 2, 3):
        violations.append(
            Violation(
                ViolationCode.INVALID_COMPATIBILITY,
                "common.compatibility",
                'Field "compatibility" must be 1, 2 or 3.',
            )
        )

    icons = common.get("icons")
    if not isinstance(icons, list) or not icons:
        violations.append(
            Violation(ViolationCode.EMPTY_ICONS, "common.icons", 'Field "icons" must contain at least 1 item.')
        )
        return violations

    for position, icon in enumerate(icons, start=1):
        field = f"common.icons[{position - 1}]"
        if not isinstance(icon, dict):
            violations.append(Violation(ViolationCode.INVALID_ICON, field, f"Icon #{position} is invalid."))
            continue
        if not _non_empty_str(icon.get("class")):
            violations.append(Violation(ViolationCode.INVALID_ICON, field, f'Icon #{position} needs a "class".'))
        if not _non_empty_str(icon.get("tooltip")):
            violations.append(Violation(ViolationCode.INVALID_ICON, field, f'Icon #{position} needs a "tooltip".'))
    return violations


def _check_locales(locales: dict, required: Iterable[str]) -> List[Violation]:
    violations = []
    for locale in required:
        block = locales.get(locale)
        if not isinstance(block, dict):
            violations.append(
                Violation(ViolationCode.MISSING_LOCALE, f"locales.{locale}", f'Locale "{locale}" is missing.')
            )
            continue
        if not _non_empty_str(block.get("title")):
            violations.append(
                Violation(ViolationCode.MISSING_TITLE, f"locales.{locale}.title", f'Locale "{locale}" needs a "title".')
            )
        if not _non_empty_str(block.get("description")):
            violations.append(
                Violation(
                    ViolationCode.MISSING_DESCRIPTION,
                    f"locales.{locale}.description",
                    f'Locale "{locale}" needs a "description".',
                )
            )
    return violations


def _check_plan_entry(entry: Any, field: str) -> List[Violation]:
    if not isinstance(entry, dict):
        return [Violation(ViolationCode.INVALID_PLAN_ENTRY, field, f"{field} is invalid.")]
    kind = entry.get("kind")
    if kind not in (PlanKind.NEW.value, PlanKind.EXISTING.value):
        return [Violation(ViolationCode.INVALID_PLAN_ENTRY, field, f'{field} needs kind "new" or "existing".')]
    if kind == PlanKind.NEW.value and not _non_empty_str(entry.get("fileId")):
        return [Violation(ViolationCode.INVALID_PLAN_ENTRY, field, f'{field} with kind "new" needs a fileId.')]
    if kind == PlanKind.EXISTING.value and not _non_empty_str(entry.get("path")):
        return [Violation(ViolationCode.INVALID_PLAN_ENTRY, field, f'{field} with kind "existing" needs a path.')]
    return []


def _check_thumbnail_config(payload: dict) -> List[Violation]:
    config = payload.get("thumbnailConfig")
    if config is None:
        return []
    if not isinstance(config, dict):
        return [
            Violation(
                ViolationCode.INVALID_THUMBNAIL_CONFIG,
                "thumbnailConfig",
                "thumbnailConfig must be an object when provided.",
            )
        ]

    mode = config.get("mode") or ThumbnailMode.IMAGE.value
    if mode not in (ThumbnailMode.IMAGE.value, ThumbnailMode.LOGO_COLOR.value):
        return [
            Violation(
                ViolationCode.INVALID_THUMBNAIL_MODE,
                "thumbnailConfig.mode",
                'thumbnailConfig.mode must be "image" or "logoColor".',
            )
        ]

    plan = payload.get("thumbnailPlan") or {}
    if mode != ThumbnailMode.LOGO_COLOR.value or plan.get("kind") != PlanKind.NEW.value:
        return []

    violations = []
    logo_file_id = config.get("logoFileId")
    if logo_file_id is not None and not isinstance(logo_file_id, str):
        violations.append(
            Violation(
                ViolationCode.INVALID_THUMBNAIL_CONFIG,
                "thumbnailConfig.logoFileId",
                "thumbnailConfig.logoFileId is invalid.",
            )
        )
    if not is_hex_color(config.get("backgroundColor")):
        violations.append(
            Violation(
                ViolationCode.INVALID_BACKGROUND_COLOR,
                "thumbnailConfig.backgroundColor",
                "thumbnailConfig.backgroundColor must be a #rgb or #rrggbb color in logoColor mode.",
            )
        )
    padding = config.get("paddingPercent")
    if padding is not None and not (
        _is_finite_number(padding) and 0 <= padding <= MAX_LOGO_PADDING_PERCENT
    ):
        violations.append(
            Violation(
                ViolationCode.INVALID_PADDING,
                "thumbnailConfig.paddingPercent",
                f"thumbnailConfig.paddingPercent must be between 0 and {MAX_LOGO_PADDING_PERCENT}.",
            )
        )
    return violations


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def validate_project_payload(payload: Any, locales: Sequence[str] = LOCALES) -> List[Violation]:
    """Return every violation found in a decoded create/update payload.

    Top-level shape problems are reported alone: the nested rules need the
    containers they inspect.
    """
    if not isinstance(payload, dict):
        return [Violation(ViolationCode.PAYLOAD_NOT_OBJECT, "", "Payload must be a JSON object.")]

    violations = _check_top_level(payload)
    if violations:
        return violations

    violations.extend(_check_common(payload["common"]))
    violations.extend(_check_locales(payload["locales"], locales))
    for index, entry in enumerate(payload["galleryPlan"]):
        violations.extend(_check_plan_entry(entry, f"galleryPlan[{index}]"))
    violations.extend(_check_plan_entry(payload["thumbnailPlan"], "thumbnailPlan"))
    violations.extend(_check_thumbnail_config(payload))
    return violations
