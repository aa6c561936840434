"""Tests for field truncation and HTML escaping."""

import pytest

from formgate.sanitize import clip_escaped, sanitize_field, truncate


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("<b>hi</b>", "&lt;b&gt;hi&lt;/b&gt;"),
        ('say "hi"', "say &quot;hi&quot;"),
        ("it's", "it&#x27;s"),
        ("fish & chips", "fish &amp; chips"),
        ("plain text", "plain text"),
    ],
)
def test_escapes_html(raw, expected):
    assert sanitize_field(raw) == expected


def test_empty_values():
    assert sanitize_field(None) == ""
    assert sanitize_field("") == ""
    assert truncate(None) == ""


def test_truncates_before_escaping():
    value = sanitize_field("<" * 10, max_length=3)
    assert value == "&lt;&lt;&lt;"


def test_default_limit():
    assert len(truncate("a" * 6000)) == 5000


class TestClipEscaped:
    def test_short_text_untouched(self):
        assert clip_escaped("a &amp; b", 100) == "a &amp; b"

    def test_cut_inside_entity_drops_it(self):
        assert clip_escaped("ab&amp;cd", 5) == "ab"

    def test_cut_after_entity_keeps_it(self):
        assert clip_escaped("ab&amp;cd", 7) == "ab&amp;"
