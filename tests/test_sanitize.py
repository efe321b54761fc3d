from __future__ import annotations

import pytest

from profilepage.domain.sanitize import (
    LINK_SCHEMES,
    clamp_number,
    clean_text,
    strip_tags,
    valid_email,
    valid_hex_color,
    valid_url,
)


def test_strip_tags_keeps_text_only():
    assert strip_tags("<b>hi</b>") == "hi"
    assert strip_tags("<b>hi</b><script>x</script>") == "hix"
    assert strip_tags("plain") == "plain"
    assert strip_tags(None) == ""


def test_strip_tags_does_not_resurrect_escaped_markup():
    out = strip_tags("&lt;script&gt;alert(1)&lt;/script&gt;")
    assert "<" not in out
    assert "alert(1)" in out


def test_clean_text_trims_and_caps():
    assert clean_text("  <i>abc</i>  ", 2) == "ab"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("https://example.com/a", "https://example.com/a"),
        ("example.com", "https://example.com"),
        ("http://localhost:8000/x", "http://localhost:8000/x"),
        ("example.com:8080/x", "https://example.com:8080/x"),
        ("localhost:3000", "https://localhost:3000"),
        ("javascript:alert(1)", None),
        ("https://nohost", None),
        ("https://exa mple.com", None),
        ("", None),
        (None, None),
    ],
)
def test_valid_url(value, expected):
    assert valid_url(value) == expected


def test_link_schemes_allow_mailto_and_tel():
    assert valid_url("mailto:a@b.co", LINK_SCHEMES) == "mailto:a@b.co"
    assert valid_url("tel:+81 3", LINK_SCHEMES) is None
    assert valid_url("tel:+81312345678", LINK_SCHEMES) == "tel:+81312345678"
    assert valid_url("mailto:a@b.co") is None


def test_email_and_colour_and_numbers():
    assert valid_email("a@b.co") == "a@b.co"
    assert valid_email("not-an-email") is None
    assert valid_hex_color("#ff00aa") == "#FF00AA"
    assert valid_hex_color("ff00aa") == "#FF00AA"
    assert valid_hex_color("red") is None
    assert clamp_number("150", 0, 100) == 100
    assert clamp_number(True, 0, 1) is None
    assert clamp_number(float("nan"), 0, 1) is None
