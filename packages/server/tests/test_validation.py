"""
Payload validation tests.

Each rule is checked on its own: start from a valid payload, break one
thing, expect exactly that violation.
"""

from __future__ import annotations

import pytest

from portfolio_cms_shared.validation import (
    ViolationCode,
    is_hex_color,
    is_likely_url,
    validate_project_payload,
)


HUGE = 10**400


def codes(violations):
    return [v.code for v in violations]


class TestValidPayload:
    def test_valid_payload_has_no_violations(self, project_payload):
        assert validate_project_payload(project_payload()) == []

    def test_existing_entries_are_shape_valid(self, project_payload):
        payload = project_payload(
            galleryPlan=[{"kind": "existing", "path": "assets/a/1.webp"}, {"kind": "new", "fileId": "g2"}],
            thumbnailPlan={"kind": "existing", "path": "assets/thumbs/a.webp"},
        )
        assert validate_project_payload(payload) == []


class TestTopLevel:
    def test_not_an_object(self):
        assert codes(validate_project_payload(["x"])) == [ViolationCode.PAYLOAD_NOT_OBJECT]

    @pytest.mark.parametrize("field", ["category", "assetFolder"])
    def test_required_strings(self, project_payload, field):
        violations = validate_project_payload(project_payload(**{field: "   "}))
        assert [(v.code, v.field) for v in violations] == [(ViolationCode.MISSING_FIELD, field)]

    def test_empty_gallery_plan(self, project_payload):
        assert codes(validate_project_payload(project_payload(galleryPlan=[]))) == [ViolationCode.EMPTY_GALLERY_PLAN]

    def test_top_level_problems_are_reported_alone(self, project_payload):
        payload = project_payload(common=None)
        payload["locales"]["pt"]["title"] = ""
        assert codes(validate_project_payload(payload)) == [ViolationCode.MISSING_FIELD]


class TestCommonFields:
    def _with_common(self, project_payload, **changes):
        payload = project_payload()
        payload["common"].update(changes)
        return validate_project_payload(payload)

    def test_dates_required(self, project_payload):
        assert codes(self._with_common(project_payload, initialDate="", endDate=" ")) == [
            ViolationCode.MISSING_DATE,
            ViolationCode.MISSING_DATE,
        ]

    def test_urls_must_be_http(self, project_payload):
        violations = self._with_common(project_payload, projectUrlLink="ftp://example.com")
        assert [(v.code, v.field) for v in violations] == [(ViolationCode.INVALID_URL, "common.projectUrlLink")]

    def test_developed_must_be_bool(self, project_payload):
        assert codes(self._with_common(project_payload, developed="yes")) == [ViolationCode.INVALID_DEVELOPED]

    @pytest.mark.parametrize("value", [-1, 100.5, float("nan"), float("inf"), "50", True, None])
    def test_percentage_range(self, project_payload, value):
        assert codes(self._with_common(project_payload, developingPercentage=value)) == [
            ViolationCode.INVALID_PERCENTAGE
        ]

    @pytest.mark.parametrize("value", [0, 4, 2.5, "x", None])
    def test_compatibility_values(self, project_payload, value):
        assert codes(self._with_common(project_payload, compatibility=value)) == [
            ViolationCode.INVALID_COMPATIBILITY
        ]

    @pytest.mark.parametrize("value", [HUGE, -HUGE])
    def test_huge_integers_are_violations(self, project_payload, value):
        assert codes(self._with_common(project_payload, developingPercentage=value, compatibility=value)) == [
            ViolationCode.INVALID_PERCENTAGE,
            ViolationCode.INVALID_COMPATIBILITY,
        ]

    def test_long_digit_string_compatibility(self, project_payload):
        assert codes(self._with_common(project_payload, compatibility="9" * 5000)) == [
            ViolationCode.INVALID_COMPATIBILITY
        ]

    def test_compatibility_numeric_string_is_accepted(self, project_payload):
        assert self._with_common(project_payload, compatibility="2") == []

    def test_icons_required(self, project_payload):
        assert codes(self._with_common(project_payload, icons=[])) == [ViolationCode.EMPTY_ICONS]

    def test_each_icon_needs_class_and_tooltip(self, project_payload):
        violations = self._with_common(project_payload, icons=[{"class": "react", "tooltip": ""}, {"tooltip": "x"}])
        assert [v.field for v in violations] == ["common.icons[0]", "common.icons[1]"]


class TestLocales:
    def test_every_locale_needs_title_and_description(self, project_payload):
        payload = project_payload()
        payload["locales"]["en"]["title"] = ""
        del payload["locales"]["es"]
        violations = validate_project_payload(payload)
        assert [(v.code, v.field) for v in violations] == [
            (ViolationCode.MISSING_TITLE, "locales.en.title"),
            (ViolationCode.MISSING_LOCALE, "locales.es"),
        ]


class TestMediaPlan:
    @pytest.mark.parametrize(
        "entry",
        [{"kind": "new"}, {"kind": "existing", "path": ""}, {"kind": "copy", "fileId": "x"}, "g1"],
    )
    def test_gallery_entry_tags(self, project_payload, entry):
        violations = validate_project_payload(project_payload(galleryPlan=[entry]))
        assert [(v.code, v.field) for v in violations] == [(ViolationCode.INVALID_PLAN_ENTRY, "galleryPlan[0]")]

    def test_thumbnail_mode_must_be_known(self, project_payload):
        violations = validate_project_payload(project_payload(thumbnailConfig={"mode": "sepia"}))
        assert codes(violations) == [ViolationCode.INVALID_THUMBNAIL_MODE]

    def test_logo_mode_requires_color_and_padding_range(self, project_payload):
        payload = project_payload(thumbnailConfig={"mode": "logoColor", "backgroundColor": "red", "paddingPercent": 55})
        assert codes(validate_project_payload(payload)) == [
            ViolationCode.INVALID_BACKGROUND_COLOR,
            ViolationCode.INVALID_PADDING,
        ]

    def test_huge_padding(self, project_payload):
        payload = project_payload(
            thumbnailConfig={"mode": "logoColor", "backgroundColor": "#0af", "paddingPercent": HUGE}
        )
        assert codes(validate_project_payload(payload)) == [ViolationCode.INVALID_PADDING]

    def test_logo_mode_valid(self, project_payload):
        payload = project_payload(thumbnailConfig={"mode": "logoColor", "backgroundColor": "#0af", "paddingPercent": 40})
        assert validate_project_payload(payload) == []

    def test_logo_settings_ignored_for_existing_thumbnail(self, project_payload):
        payload = project_payload(
            thumbnailPlan={"kind": "existing", "path": "assets/thumbs/a.webp"},
            thumbnailConfig={"mode": "logoColor", "backgroundColor": "nope"},
        )
        assert validate_project_payload(payload) == []


class TestHelpers:
    @pytest.mark.parametrize("value,expected", [("", True), ("  ", True), ("https://x.io", True), ("HTTP://x", True), ("www.x.io", False), (None, False)])
    def test_is_likely_url(self, value, expected):
        assert is_likely_url(value) is expected

    @pytest.mark.parametrize("value,expected", [("#abc", True), ("#A1B2C3", True), ("#abcd", False), ("abc", False), (3, False)])
    def test_is_hex_color(self, value, expected):
        assert is_hex_color(value) is expected
