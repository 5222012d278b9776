"""Tests for template presets and the placeholder vocabulary."""

from __future__ import annotations

import pytest

from notify_templates.template.constants import (
    DATE_FORMAT_PRESETS,
    PLACEHOLDER_SECTIONS,
    RESERVED_STAT_IDS,
    STATIC_PLACEHOLDERS,
    THEME_COLOR_TOKENS,
    THEME_PRESETS,
)
from notify_templates.template.models import Statistic, StatisticFormat, Theme
from notify_templates.template.validation import validate_hex_color, validate_statistics


class TestThemePresets:
    def test_names(self):
        assert list(THEME_PRESETS) == ["Default Blue", "Forest Green", "Sunset Orange", "Royal Purple", "Slate Gray"]
        assert THEME_PRESETS["Default Blue"] == Theme()

    @pytest.mark.parametrize("name", list(THEME_PRESETS))
    def test_colors_are_valid(self, name):
        tokens = THEME_PRESETS[name].tokens()
        assert all(validate_hex_color(tokens[t]) is None for t in THEME_COLOR_TOKENS)


class TestPlaceholders:
    def test_every_theme_token_is_a_placeholder(self):
        assert set(Theme().tokens()) <= STATIC_PLACEHOLDERS

    def test_sections(self):
        assert "recordCount" in PLACEHOLDER_SECTIONS["Record Data"]
        assert RESERVED_STAT_IDS == STATIC_PLACEHOLDERS


class TestDateFormats:
    def test_default_format_is_a_preset(self):
        assert StatisticFormat().date_format in DATE_FORMAT_PRESETS

    def test_unknown_format_warns(self):
        stat = Statistic(
            id="opened",
            field="created",
            operation="max",
            label="Latest",
            format=StatisticFormat(format="date", date_format="YY/M"),
        )
        result = validate_statistics([stat])
        assert result.is_valid
        assert result.warnings == ['Statistic "opened": unrecognized date format "YY/M"']
