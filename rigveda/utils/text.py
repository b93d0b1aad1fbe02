"""Diacritic-insensitive text matching for Sanskrit transliteration."""

from __future__ import annotations

from typing import List, Tuple

# Each diacritic-bearing letter maps to exactly one plain letter; _fold keeps
# the source index of every output character so matches map back to the text.
_FOLD_GROUPS = {
    "a": "āáàâäĀÁÀÂÄ",
    "i": "īíìîïĪÍÌÎÏ",
    "u": "ūúùûüŪÚÙÛÜ",
    "r": "ṛṝṟṚṜṞ",
    "l": "ḷḹḶḸ",
    "e": "ēéèêëĒÉÈÊË",
    "o": "ōóòôöŌÓÒÔÖ",
    "m": "ṃṁṂṀ",
    "h": "ḥḤ",
    "n": "ṅñṇṄÑṆ",
    "t": "ṭṬ",
    "d": "ḍḌ",
    "s": "śṣŚṢ",
    "c": "çÇ",
}

DIACRITIC_MAP = {ch: base for base, chars in _FOLD_GROUPS.items() for ch in chars}

if any(len(k) != 1 or len(v) != 1 for k, v in DIACRITIC_MAP.items()):
    raise ValueError("diacritic substitutions must be one character to one character")

_FOLD_TABLE = str.maketrans(DIACRITIC_MAP)
_COMBINING_FIRST, _COMBINING_LAST = "\u0300", "\u036f"

ELLIPSIS = "…"


def _fold(text: str) -> Tuple[str, List[int]]:
    """Normalize ``text`` and record, per output character, its source index.

    Combining accents (U+0300-U+036F) are dropped, so a vowel written with a
    separate accent mark folds like its precomposed form.
    """
    chars: List[str] = []
    offsets: List[int] = []
    for i, ch in enumerate(text):
        for c in ch.lower().translate(_FOLD_TABLE):
            if _COMBINING_FIRST <= c <= _COMBINING_LAST:
                continue
            if c.isspace():
                if chars and chars[-1] != " ":
                    chars.append(" ")
                    offsets.append(i)
                continue
            chars.append(c)
            offsets.append(i)
    if chars and chars[-1] == " ":
        chars.pop()
        offsets.pop()
    return "".join(chars), offsets


def normalize(text: str) -> str:
    """Lower-case, strip Vedic diacritics and collapse whitespace."""
    if not text:
        return ""
    return _fold(text)[0]


def matches(candidate: str, query: str) -> bool:
    """True if the normalized query occurs inside the normalized candidate.

    An empty (or whitespace-only) query matches nothing.
    """
    q = normalize(query)
    if not q:
        return False
    return q in normalize(candidate)


def _truncate(text: str, max_length: int) -> str:
    if len(text) > max_length:
        return text[:max_length] + ELLIPSIS
    return text


def snippet(text: str, query: str, max_length: int = 150) -> str:
    """
    Return a window of at most ``max_length`` characters of ``text``
    centered on the first match of ``query``.

    The match is located in the normalized text and mapped back to the
    original through the fold offsets. Ellipses mark the sides where the
    window was clipped.
    """
    text = text or ""
    q = normalize(query)
    if not q:
        return _truncate(text, max_length)
    folded, offsets = _fold(text)
    idx = folded.find(q)
    if idx == -1:
        return _truncate(text, max_length)

    match_start = offsets[idx]
    match_end = offsets[idx + len(q) - 1] + 1
    half = max(0, (max_length - (match_end - match_start)) // 2)
    start = max(0, match_start - half)
    end = min(len(text), match_end + half)

    # Shift the window inward when it hits either edge.
    if start == 0:
        end = min(len(text), max_length)
    elif end == len(text):
        start = max(0, len(text) - max_length)
    end = min(end, start + max_length)

    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(text) else ""
    return prefix + text[start:end] + suffix
