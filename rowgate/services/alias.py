from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable

"""URL-safe alias helpers.

- ascii_transliterate: 既定の翻字 (NFKD 分解 + 合字展開、非 ASCII 除去)
- string_url_safe: 任意テキスト -> 小文字・ハイフン区切り ASCII トークン
- increment_dash: "foo" -> "foo-2", "foo-2" -> "foo-3"

Records receive the transliterator as a constructor argument so a locale
specific one can be injected.
"""

__all__ = [
    "Transliterator",
    "ascii_transliterate",
    "string_url_safe",
    "increment_dash",
]

Transliterator = Callable[[str], str]

# NFKD で分解されない文字
_LIGATURES = {
    "ß": "ss",
    "æ": "ae",
    "Æ": "AE",
    "œ": "oe",
    "Œ": "OE",
    "ø": "o",
    "Ø": "O",
    "đ": "d",
    "Đ": "D",
    "ł": "l",
    "Ł": "L",
    "þ": "th",
    "Þ": "TH",
}

_UNSAFE_RUN = re.compile(r"(\s|[^A-Za-z0-9\-])+")
_DASH_SUFFIX = re.compile(r"-(\d+)$")


def ascii_transliterate(text: str) -> str:
    text = "".join(_LIGATURES.get(ch, ch) for ch in text)
    decomposed = unicodedata.normalize("NFKD", text)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def string_url_safe(text: str | None, transliterate: Transliterator = ascii_transliterate) -> str:
    """Convert text to a lowercase, hyphen separated, ASCII-safe alias.

    Existing dashes are treated as word separators so they collapse together
    with surrounding whitespace.

    >>> string_url_safe("  Crème Brûlée -- Recipe ")
    'creme-brulee-recipe'
    """
    s = str(text or "").replace("-", " ")
    s = transliterate(s)
    s = s.lower().strip()
    s = _UNSAFE_RUN.sub("-", s)
    return s.strip("-")


def increment_dash(text: str) -> str:
    """Increment a dash delimited numeric suffix, appending ``-2`` when absent."""
    m = _DASH_SUFFIX.search(text)
    if m:
        return f"{text[: m.start()]}-{int(m.group(1)) + 1}"
    return f"{text}-2"
