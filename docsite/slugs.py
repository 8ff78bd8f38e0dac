"""Alias derivation and display-title formatting."""

from __future__ import annotations

import re
import unicodedata
from typing import Dict

_TRANSLITERATION: Dict[str, str] = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "e",
    "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m",
    "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "h", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "sch", "ъ": "",
    "ы": "y", "ь": "", "э": "e", "ю": "yu", "я": "ya",
    "є": "ye", "і": "i", "ї": "yi", "ґ": "g",
    "ß": "ss", "æ": "ae", "œ": "oe", "ø": "o", "å": "a", "ð": "d", "þ": "th",
    "ł": "l", "đ": "d", "ı": "i",
}

_SYMBOLS = re.compile(r"[^a-z0-9\s_-]")
_SEPARATORS = re.compile(r"[\s_-]+")

_OVERVIEW_STEMS = {"readme", "index", "root", "home"}


def transliterate(text: str) -> str:
    """Map non-ASCII letters in lower-cased ``text`` to ASCII approximations."""
    mapped = "".join(_TRANSLITERATION.get(char, char) for char in text)
    decomposed = unicodedata.normalize("NFKD", mapped)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def slugify(title: str) -> str:
    """Derive a URL-safe alias from a display title."""
    lowered = transliterate(title.strip().lower())
    stripped = _SYMBOLS.sub("", lowered)
    return _SEPARATORS.sub("-", stripped).strip("-")


def format_name(name: str) -> str:
    """Turn a file or folder name into a display title."""
    words = name.replace("_", " ").split("-")
    return " ".join(word[:1].upper() + word[1:] for word in words).strip()


def title_for_file(stem: str) -> str:
    if stem.lower() in _OVERVIEW_STEMS:
        return "Overview"
    return format_name(stem)


__all__ = ["format_name", "slugify", "title_for_file", "transliterate"]
