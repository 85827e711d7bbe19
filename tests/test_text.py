"""Tests for text preprocessing, URL normalization and fingerprints."""

import pytest

from meez.models import InputKind, RawInput
from meez.text import (
    detect_input_type,
    fingerprint,
    normalize_url,
    preprocess_raw_text,
    validate_recipe_text,
)


class TestPreprocessRawText:
    """Whitespace normalization the fingerprint cache relies on."""

    @pytest.mark.parametrize("text", [
        "  Pancakes\r\n\r\n\r\n\r\nMix flour.  ",
        "\r\rA\r\nB\n\n\n\n\nC\n",
        "\n\n\n",
        "already clean",
        "tabs\t\n\n\n\n\tand spaces  ",
    ])
    def test_output_properties(self, text):
        result = preprocess_raw_text(text)
        assert result == result.strip()
        assert "\r" not in result
        assert "\n\n\n" not in result

    @pytest.mark.parametrize("text", [
        "  a\r\n\r\n\r\nb  ",
        "x\n\n\n\n\ny\r\rz",
        "",
    ])
    def test_idempotent(self, text):
        once = preprocess_raw_text(text)
        assert preprocess_raw_text(once) == once

    def test_collapses_to_exactly_two_newlines(self):
        assert preprocess_raw_text("a\n\n\n\nb") == "a\n\nb"
        assert preprocess_raw_text("a\n\nb") == "a\n\nb"

    def test_none_and_empty(self):
        assert preprocess_raw_text(None) == ""
        assert preprocess_raw_text("   ") == ""


class TestNormalizeUrl:
    """Equivalent links share one identity."""

    def test_lowercases_host_and_strips_www(self):
        assert normalize_url("HTTPS://WWW.Example.COM/Pasta") == "https://example.com/Pasta"

    def test_drops_tracking_params_and_sorts_query(self):
        url = "https://example.com/r?utm_source=ig&b=2&fbclid=abc&a=1"
        assert normalize_url(url) == "https://example.com/r?a=1&b=2"

    def test_drops_fragment_trailing_slash_and_default_port(self):
        assert normalize_url("https://example.com:443/dijon-salmon/#comments") == "https://example.com/dijon-salmon"

    def test_keeps_non_default_port(self):
        assert normalize_url("http://localhost:8080/recipe") == "http://localhost:8080/recipe"

    def test_root_path_kept(self):
        assert normalize_url("https://example.com") == "https://example.com/"

    def test_adds_scheme(self):
        assert normalize_url("example.com/pasta") == "https://example.com/pasta"

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            normalize_url("  ")


class TestFingerprint:
    """Stable cache identities."""

    def test_same_url_same_fingerprint(self):
        a = fingerprint(RawInput.url("https://www.halfbakedharvest.com/dijon-salmon/"))
        b = fingerprint(RawInput.url("https://halfbakedharvest.com/dijon-salmon?utm_medium=email"))
        assert a == b

    def test_different_urls_differ(self):
        a = fingerprint(RawInput.url("https://example.com/a"))
        b = fingerprint(RawInput.url("https://example.com/b"))
        assert a != b

    def test_text_ignores_whitespace_and_case(self):
        a = fingerprint(RawInput.raw_text("Pancakes\r\n\r\n\r\n2 cups FLOUR\n"))
        b = fingerprint(RawInput.raw_text("  pancakes\n\n2  cups flour"))
        assert a == b

    def test_text_and_url_namespaces_differ(self):
        assert fingerprint(RawInput.raw_text("https://example.com/a")) != fingerprint(
            RawInput.url("https://example.com/a")
        )

    def test_blank_text_has_no_fingerprint(self):
        assert fingerprint(RawInput.raw_text(" \n\n ")) is None

    def test_images_have_no_fingerprint(self):
        assert fingerprint(RawInput.image(b"\x89PNG")) is None

    def test_video_keyed_by_source_url(self):
        a = fingerprint(RawInput.video("caption one", source_url="https://www.tiktok.com/@chef/video/1"))
        b = fingerprint(RawInput.video("other caption", source_url="https://tiktok.com/@chef/video/1/"))
        assert a == b

    def test_video_without_url_keyed_by_transcript(self):
        a = fingerprint(RawInput.video("Add 2 eggs"))
        b = fingerprint(RawInput.video("add 2  eggs"))
        assert a == b


class TestDetectInputType:
    def test_http_urls(self):
        assert detect_input_type("https://example.com/recipe") is InputKind.URL
        assert detect_input_type("  HTTP://example.com ") is InputKind.URL

    def test_bare_domain(self):
        assert detect_input_type("allrecipes.com/recipe/123") is InputKind.URL

    def test_recipe_text(self):
        assert detect_input_type("2 eggs\n1 cup milk\nWhisk together.\nCook.") is InputKind.RAW_TEXT

    def test_sentence_is_text(self):
        assert detect_input_type("my grandma's stew") is InputKind.RAW_TEXT


class TestValidateRecipeText:
    def test_empty_rejected(self):
        assert validate_recipe_text("") is not None
        assert validate_recipe_text("   ") is not None

    def test_short_without_keywords_rejected(self):
        assert validate_recipe_text("hello there") is not None

    def test_short_with_keywords_accepted(self):
        assert validate_recipe_text("Ingredients: 2 eggs") is None

    def test_long_text_accepted(self):
        text = "Whisk two eggs with milk and a pinch of salt, then cook gently in butter. " * 3
        assert validate_recipe_text(text) is None
