from __future__ import annotations

import pytest

from rowgate.services.alias import ascii_transliterate, increment_dash, string_url_safe


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Hello World", "hello-world"),
        ("  Crème Brûlée -- Recipe ", "creme-brulee-recipe"),
        ("Straße & Œuvre", "strasse-oeuvre"),
        ("already-safe-alias", "already-safe-alias"),
        ("a_b.c/d", "a-b-c-d"),
        ("日本語", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_string_url_safe(text, expected):
    assert string_url_safe(text) == expected


def test_ascii_transliterate_strips_marks():
    assert ascii_transliterate("Ångström") == "Angstrom"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("foo", "foo-2"),
        ("foo-2", "foo-3"),
        ("foo-9", "foo-10"),
        ("foo-bar", "foo-bar-2"),
        ("2024-01", "2024-2"),
    ],
)
def test_increment_dash(text, expected):
    assert increment_dash(text) == expected
