"""
Record lookup across the locale catalogs.

A record's only location is (category, index) inside each locale document.
Identifiers tie the three copies together:
- records carry an explicit, immutable `id`
- records written before ids existed fall back to the modal slug of their
  own title
- when a locale has no identifier match, the reference locale's
  (category, index) is used instead; if even that slot is missing the
  catalogs have diverged and `LocaleInconsistency` is raised
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional

from portfolio_cms.core.errors import (
    IdentifierConflict,
    LocaleInconsistency,
    RecordNotFound,
    UnknownCategory,
)
from portfolio_cms.services.catalog_store import Catalogs, LocaleCatalog

_WHITESPACE_RE = re.compile(r"\s+")
_DASHES_RE = re.compile(r"-+")


def modal_slug(value: object) -> str:
    """Slug used by the portfolio site to address a project modal."""
    text = unicodedata.normalize("NFD", str(value or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = _WHITESPACE_RE.sub("-", text)
    text = _DASHES_RE.sub("-", text)
    return text.strip("-").lower()


def record_identifier(record: Mapping[str, Any]) -> str:
    stored = record.get("id")
    if isinstance(stored, str) and stored.strip():
        return modal_slug(stored)
    return modal_slug(record.get("title"))


@dataclass(frozen=True)
class RecordLocation:
    category: str
    index: int
    record: dict

    @property
    def identifier(self) -> str:
        return record_identifier(self.record)

    @property
    def coordinates(self) -> tuple[str, int]:
        return self.category, self.index


def iter_records(catalog: LocaleCatalog) -> Iterator[RecordLocation]:
    for category, records in catalog.items():
        for index, record in enumerate(records):
            if isinstance(record, dict):
                yield RecordLocation(category, index, record)


def locate(catalog: LocaleCatalog, identifier: str) -> Optional[RecordLocation]:
    wanted = modal_slug(identifier)
    for location in iter_records(catalog):
        if location.identifier == wanted:
            return location
    return None


def find_by_identifier(catalog: LocaleCatalog, identifier: str) -> RecordLocation:
    location = locate(catalog, identifier)
    if location is None:
        raise RecordNotFound(f'Project "{identifier}" was not found.')
    return location


def resolve_across_locales(
    catalogs: Catalogs, identifier: str, reference_locale: str
) -> dict[str, RecordLocation]:
    """Find one record in every locale.

    Direct identifier match first; otherwise the reference locale's
    coordinates are reused. An out-of-range fallback is a structural
    divergence and is reported, never repaired.
    """
    reference = locate(catalogs[reference_locale], identifier)
    if reference is None:
        raise RecordNotFound(f'Project "{identifier}" was not found in locale "{reference_locale}".')

    targets: dict[str, RecordLocation] = {}
    for locale, catalog in catalogs.items():
        if locale == reference_locale:
            targets[locale] = reference
            continue
        direct = locate(catalog, identifier)
        if direct is not None:
            targets[locale] = direct
            continue

        records = catalog.get(reference.category)
        if not isinstance(records, list) or reference.index >= len(records):
            raise LocaleInconsistency(
                f'Could not locate project "{identifier}" in locale "{locale}". '
                "Check that the catalog files are consistent."
            )
        targets[locale] = RecordLocation(reference.category, reference.index, records[reference.index])
    return targets


def missing_categories(catalogs: Catalogs) -> dict[str, list[str]]:
    """Categories present in some locale but absent from others, per locale."""
    every: list[str] = []
    for catalog in catalogs.values():
        every.extend(c for c in catalog if c not in every)
    report = {}
    for locale, catalog in catalogs.items():
        absent = [c for c in every if c not in catalog]
        if absent:
            report[locale] = absent
    return report


def assert_category_exists(catalogs: Catalogs, category: str) -> None:
    missing = [locale for locale, catalog in catalogs.items() if category not in catalog]
    if missing:
        raise UnknownCategory(
            f'Category "{category}" does not exist in the catalogs for locale(s): {", ".join(missing)}.'
        )


def assert_identifier_unique(
    catalogs: Catalogs,
    candidate: str,
    exclude: Optional[Mapping[str, RecordLocation]] = None,
) -> None:
    """Reject `candidate` if another record already answers to it.

    `exclude` holds the record being edited (per locale); matching its own
    coordinates is not a conflict.
    """
    wanted = modal_slug(candidate)
    for locale, catalog in catalogs.items():
        own = exclude[locale].coordinates if exclude and locale in exclude else None
        for location in iter_records(catalog):
            if location.identifier == wanted and location.coordinates != own:
                raise IdentifierConflict(
                    f'Duplicate identifier in locale "{locale}": "{wanted}". '
                    "Change the title to keep identifiers unique."
                )
