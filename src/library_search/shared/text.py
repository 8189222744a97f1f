"""
Text helpers shared by normalization, scoring and deduplication.

All helpers are pure functions. Matching helpers fold case and accents
(including the Turkish dotted/dotless i) so that "Yapay Zekâ" and
"yapay zeka" compare equal; display helpers never change case.
"""

from __future__ import annotations

import re
import unicodedata

# Control characters (C0, DEL, C1)
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s]")
_YEAR = re.compile(r"(?<!\d)(1[0-9]{3}|20[0-9]{2})(?!\d)")
_ISBN_CHARS = re.compile(r"[^0-9Xx]")

_TURKISH_I = str.maketrans({"ı": "i", "İ": "I"})


def clean_title(value: str | None) -> str:
    """Remove control characters and collapse whitespace runs; case is kept."""
    if not value:
        return ""
    text = _CONTROL_CHARS.sub(" ", value)
    return _WHITESPACE.sub(" ", text).strip()


def fold(value: str | None) -> str:
    """Case- and accent-insensitive form used for matching."""
    if not value:
        return ""
    text = unicodedata.normalize("NFKD", value.translate(_TURKISH_I))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", text.casefold()).strip()


def match_key(value: str | None) -> str:
    """Folded text with punctuation removed, for title/author comparison."""
    return _WHITESPACE.sub(" ", _NON_WORD.sub(" ", fold(value))).strip()


def author_tokens(authors: list[str]) -> set[str]:
    """Normalized name tokens of every author (single letters dropped)."""
    tokens: set[str] = set()
    for author in authors:
        tokens.update(tok for tok in match_key(author).split() if len(tok) > 1)
    return tokens


# =============================================================================
# ISBN
# =============================================================================


def isbn10_to_13(isbn10: str) -> str:
    """Convert a 10-digit ISBN to its 978-prefixed ISBN-13 form."""
    core = "978" + isbn10[:9]
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(core))
    check = (10 - total % 10) % 10
    return f"{core}{check}"


def normalize_isbn(value: str | None) -> str:
    """
    Normalize an ISBN for comparison.

    Hyphens, spaces and qualifiers ("(pbk.)") are dropped; ISBN-10 values
    are converted to ISBN-13. Anything that is not 10 or 13 characters after
    cleanup returns "".

    Example:
        >>> normalize_isbn("0-14-143951-3")
        '9780141439518'
    """
    if not value:
        return ""
    # MARC 020 $a often carries "0141439513 (pbk.)"
    head = value.strip().split(" (")[0]
    digits = _ISBN_CHARS.sub("", head).upper()
    if len(digits) == 13 and digits.isdigit():
        return digits
    if len(digits) == 10 and digits[:9].isdigit():
        return isbn10_to_13(digits)
    return ""


def looks_like_isbn(value: str | None) -> bool:
    """True when the whole value is an ISBN once punctuation is removed."""
    if not value or re.search(r"[A-WYZa-wyz]", value):
        return False
    return bool(normalize_isbn(value))


# =============================================================================
# Years
# =============================================================================


def extract_year(value: object) -> int | None:
    """Pull a plausible four-digit year out of free text ("c1995.", "[2003?]")."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 1000 <= value <= 2099 else None
    match = _YEAR.search(str(value))
    return int(match.group(1)) if match else None


# =============================================================================
# Similarity
# =============================================================================


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance, two-row dynamic programming."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def title_similarity(a: str | None, b: str | None) -> float:
    """1 - levenshtein / max length over normalized titles; 0.0 when either is empty."""
    left, right = match_key(a), match_key(b)
    if not left or not right:
        return 0.0
    longest = max(len(left), len(right))
    return 1.0 - levenshtein(left, right) / longest
