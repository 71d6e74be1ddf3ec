import pytest

from library_mirror.utils.text import (
    sanitize, sanitize_optional, sanitize_genres, parse_release_year,
    first_non_empty, default_cover_url, fallback_name,
)

TRICKY_STRINGS = [
    "",
    "Portal 2",
    "Half-Life\u200b 2",
    "  \u200b padded \ufeff ",
    "\u200b \u200b",
    "Tab\tand\nnewline",
    "C1\u0085control\u009F",
    "lone\ud800surrogate\udfff",
    "\u202eright-to-left\u202c",
    "soft\u00adhyphen",
    " \u200b ",
    "日本語のゲーム",
    "Pokémon™",
]


class TestSanitize:
    def test_zero_width_space_is_removed(self):
        assert sanitize("Half-Life\u200b 2") == "Half-Life 2"

    def test_control_characters_are_removed(self):
        assert sanitize("Tab\tand\nnewline") == "Tabandnewline"
        assert sanitize("C1\u0085control\u009F") == "C1control"
        assert sanitize("\x00Null\x7f") == "Null"

    def test_surrogates_are_removed(self):
        assert sanitize("lone\ud800surrogate\udfff") == "lonesurrogate"

    def test_surrounding_whitespace_is_trimmed(self):
        assert sanitize("  \u200b padded \ufeff ") == "padded"

    def test_regular_unicode_is_kept(self):
        assert sanitize("Pokémon™") == "Pokémon™"
        assert sanitize("日本語のゲーム") == "日本語のゲーム"

    def test_empty_and_none(self):
        assert sanitize("") == ""
        assert sanitize(None) == ""

    @pytest.mark.parametrize("value", TRICKY_STRINGS)
    def test_idempotent(self, value):
        once = sanitize(value)
        assert sanitize(once) == once

    def test_optional_collapses_empty_to_none(self):
        assert sanitize_optional("\u200b ") is None
        assert sanitize_optional(None) is None
        assert sanitize_optional(42) is None
        assert sanitize_optional(" Valve ") == "Valve"


class TestSanitizeGenres:
    def test_drops_empty_and_duplicates_keeping_order(self):
        assert sanitize_genres(["Action", "", " Action", "\u200b", "Indie", None]) == ["Action", "Indie"]

    def test_none_is_empty(self):
        assert sanitize_genres(None) == []


class TestParseReleaseYear:
    @pytest.mark.parametrize("text, expected", [
        ("21 Aug, 2012", 2012),
        ("Q3 2025", 2025),
        ("1998", 1998),
        ("Released 1999, remastered 2020", 1999),
        ("Coming soon", None),
        ("1899", None),
        ("2100", None),
        ("abc2012", None),
        ("2012\u5e748\u670821\u65e5", 2012),
        ("\u0661\u0669\u0669\u0668", None),
        ("", None),
        (None, None),
    ])
    def test_first_year_in_range(self, text, expected):
        assert parse_release_year(text) == expected


class TestFieldHelpers:
    def test_first_non_empty(self):
        assert first_non_empty(["Valve", "Hidden Path"]) == "Valve"
        assert first_non_empty([]) is None
        assert first_non_empty(None) is None
        assert first_non_empty([""]) is None

    def test_defaults(self):
        assert fallback_name(440) == "App 440"
        assert default_cover_url(440) == "https://cdn.cloudflare.steamstatic.com/steam/apps/440/header.jpg"
