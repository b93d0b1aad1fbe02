"""
Context selection for Ask AI.
Ranks index entries against a question and formats them for the chat model.
"""

import re
from typing import List, Optional, Sequence

import numpy as np
from rank_bm25 import BM25Okapi

from .utils.types import SearchIndexEntry


_NON_TOKEN_RE = re.compile(r"[^\w\s.]|_")

_DOTTED_REF_RE = re.compile(r"^\s*([0-9]+)\s*[.:]\s*([0-9]+)(?:\s*[.:]\s*([0-9]+))?\s*$")
_WORDED_REF_RE = re.compile(r"mandala\s*([0-9]+).*?(?:sukta|hymn)\s*([0-9]+)(?:.*?verse\s*([0-9]+))?")

CONTEXT_HEADER = "CONTEXT"
QUESTION_MARKER = "QUESTION: "


def tokenize(text: str) -> List[str]:
    """Lower-case and split on anything but letters, digits and periods."""
    return _NON_TOKEN_RE.sub(" ", text.lower()).split()


def _token_score(occurrences: int) -> float:
    if occurrences <= 0:
        return 0.0
    return 2 + min(occurrences, 3) * 0.5


def score_entry(tokens: Sequence[str], entry: SearchIndexEntry) -> float:
    """Sum of per-token scores; substring counts, not word matches."""
    text = entry.text.lower()
    return sum(_token_score(text.count(t)) for t in tokens)


def rank_contexts(query: str, entries: Sequence[SearchIndexEntry], limit: int = 12) -> List[SearchIndexEntry]:
    """
    Rank entries by token overlap with the query.

    Args:
        query: Free-text question
        entries: Candidate index entries
        limit: Maximum number of entries to return

    Returns:
        Entries with a positive score, best first; ties keep input order
    """
    tokens = tokenize(query)
    if not tokens or not entries or limit <= 0:
        return []

    scores = np.array([score_entry(tokens, e) for e in entries], dtype=np.float64)
    order = np.argsort(-scores, kind="stable")

    results: List[SearchIndexEntry] = []
    for idx in order:
        if len(results) >= limit:
            break
        if scores[idx] <= 0:
            break
        results.append(entries[idx])
    return results


def rank_bm25(query: str, entries: Sequence[SearchIndexEntry], limit: int = 12) -> List[SearchIndexEntry]:
    """Alternative ranking with BM25 over the same tokenization."""
    tokens = tokenize(query)
    if not tokens or not entries or limit <= 0:
        return []

    corpus_tokens = [tokenize(e.text) or [""] for e in entries]
    bm25 = BM25Okapi(corpus_tokens)
    scores = np.asarray(bm25.get_scores(tokens), dtype=np.float64)
    order = np.argsort(-scores, kind="stable")

    results: List[SearchIndexEntry] = []
    for idx in order:
        if len(results) >= limit:
            break
        if scores[idx] <= 0:
            break
        results.append(entries[idx])
    return results


def build_context_snippet(entries: Sequence[SearchIndexEntry]) -> str:
    """One "(mandala.hymn.verse) text" line per entry."""
    return "\n".join(f"({e.ref}) {e.text}" for e in entries)


def build_context_message(context: str, question: str) -> str:
    """First-turn user message carrying inline context."""
    return f"{CONTEXT_HEADER}\n{context}\n\n{QUESTION_MARKER}{question}"


def verse_context_prefix(verse: dict) -> str:
    """Context prefix for asking about a single verse; the question is appended.

    ``verse`` has the shape returned by ``random_verse``.
    """
    ref = f"{verse['mandala']}.{verse['sukta']}.{verse['verse']}"
    return (
        f"{CONTEXT_HEADER}\n({ref}) {verse.get('devanagari_text', '')}\n"
        f"({verse.get('padapatha_text', '')})\n{verse.get('translation', '')}\n\n{QUESTION_MARKER}"
    )


def parse_reference(raw: str) -> Optional[dict]:
    """
    Parse a verse locator such as "10.67.1", "10:67" or
    "mandala 10 sukta 67 verse 1".

    Returns dict with mandala, hymn, verse (verse may be None), or None.
    A mandala or hymn number of 0 is rejected.
    """
    s = (raw or "").strip().lower()

    for finder in (_DOTTED_REF_RE.match, _WORDED_REF_RE.search):
        match = finder(s)
        if not match:
            continue
        mandala = int(match.group(1))
        hymn = int(match.group(2))
        verse = int(match.group(3)) if match.group(3) else None
        if mandala and hymn:
            return {"mandala": mandala, "hymn": hymn, "verse": verse}

    return None
