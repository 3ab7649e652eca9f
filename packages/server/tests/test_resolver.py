"""
Record resolver tests: identifiers, cross-locale lookup and uniqueness.
"""

from __future__ import annotations

import pytest

from portfolio_cms.core.errors import (
    IdentifierConflict,
    LocaleInconsistency,
    RecordNotFound,
    UnknownCategory,
)
from portfolio_cms.services.resolver import (
    assert_category_exists,
    assert_identifier_unique,
    find_by_identifier,
    missing_categories,
    modal_slug,
    record_identifier,
    resolve_across_locales,
)


@pytest.fixture
def catalogs():
    return {
        "pt": {
            "web": [{"id": "loja-virtual", "title": "Loja Virtual"}, {"title": "Café Ágil"}],
            "mobile": [{"id": "app", "title": "Aplicativo"}],
        },
        "en": {
            "web": [{"id": "loja-virtual", "title": "Online Store"}, {"title": "Agile Coffee"}],
            "mobile": [{"id": "app", "title": "App"}],
        },
        "es": {
            "web": [{"id": "loja-virtual", "title": "Tienda"}, {"title": "Café Ágil"}],
            "mobile": [{"id": "app", "title": "Aplicación"}],
        },
    }


class TestIdentifiers:
    def test_modal_slug(self):
        assert modal_slug("  Café   Ágil -- Novo ") == "cafe-agil-novo"
        assert modal_slug("São Paulo Fashion Week") == "sao-paulo-fashion-week"
        assert modal_slug(None) == ""

    def test_stored_id_wins_over_title(self):
        assert record_identifier({"id": "Loja-Virtual", "title": "Something else"}) == "loja-virtual"

    def test_legacy_record_uses_title_slug(self):
        assert record_identifier({"title": "Café Ágil"}) == "cafe-agil"


class TestFind:
    def test_find_by_identifier(self, catalogs):
        location = find_by_identifier(catalogs["pt"], "cafe-agil")
        assert location.coordinates == ("web", 1)

    def test_lookup_key_is_normalized(self, catalogs):
        assert find_by_identifier(catalogs["pt"], "Café Ágil").index == 1

    def test_not_found(self, catalogs):
        with pytest.raises(RecordNotFound):
            find_by_identifier(catalogs["pt"], "nope")


class TestResolveAcrossLocales:
    def test_direct_match_in_every_locale(self, catalogs):
        targets = resolve_across_locales(catalogs, "app", "pt")
        assert {locale: t.coordinates for locale, t in targets.items()} == {
            "pt": ("mobile", 0),
            "en": ("mobile", 0),
            "es": ("mobile", 0),
        }

    def test_positional_fallback(self, catalogs):
        """en has no record answering to "cafe-agil"; the pt coordinates are reused."""
        targets = resolve_across_locales(catalogs, "cafe-agil", "pt")
        assert targets["en"].coordinates == ("web", 1)
        assert targets["en"].record["title"] == "Agile Coffee"
        assert targets["es"].record["title"] == "Café Ágil"

    def test_diverged_catalogs_raise(self, catalogs):
        del catalogs["en"]["web"][1]
        with pytest.raises(LocaleInconsistency):
            resolve_across_locales(catalogs, "cafe-agil", "pt")

    def test_missing_in_reference_locale(self, catalogs):
        with pytest.raises(RecordNotFound):
            resolve_across_locales(catalogs, "agile-coffee", "pt")


class TestCategoryAndUniqueness:
    def test_category_must_exist_everywhere(self, catalogs):
        assert_category_exists(catalogs, "web")
        catalogs["es"].pop("mobile")
        with pytest.raises(UnknownCategory) as exc_info:
            assert_category_exists(catalogs, "mobile")
        assert "es" in exc_info.value.message

    def test_missing_categories_report(self, catalogs):
        assert missing_categories(catalogs) == {}
        catalogs["en"]["games"] = []
        assert missing_categories(catalogs) == {"pt": ["games"], "es": ["games"]}

    def test_duplicate_identifier_conflicts(self, catalogs):
        with pytest.raises(IdentifierConflict):
            assert_identifier_unique(catalogs, "Loja Virtual")

    def test_record_may_keep_its_own_identifier(self, catalogs):
        targets = resolve_across_locales(catalogs, "loja-virtual", "pt")
        assert_identifier_unique(catalogs, "loja-virtual", exclude=targets)

    def test_other_record_still_conflicts_when_editing(self, catalogs):
        targets = resolve_across_locales(catalogs, "app", "pt")
        with pytest.raises(IdentifierConflict):
            assert_identifier_unique(catalogs, "loja-virtual", exclude=targets)

    def test_new_identifier_is_free(self, catalogs):
        assert_identifier_unique(catalogs, "brand-new")
