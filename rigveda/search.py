"""
Search infrastructure for the Rigveda.
Scans the mandala/hymn/verse hierarchy for diacritic-insensitive matches.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from dotenv import load_dotenv

from .rag import parse_reference, rank_bm25, rank_contexts
from .utils.loaders import (
    build_search_index,
    get_hymn,
    get_mandala,
    get_verse,
    hymn_entries,
    list_mandalas,
    load_corpus,
    load_search_index,
)
from .utils.text import matches, snippet
from .utils.types import Corpus, Hymn, MatchRecord, SearchIndexEntry, Verse


MANDALA_NUMBER = "mandala number"
HYMN_NUMBER = "hymn number"
ADDRESSEE = "addressee"
GROUP_NAME = "group name"
VERSE_NUMBER = "verse number"
DEVANAGARI = "devanagari text"
TRANSLITERATION = "transliteration"
TRANSLATION = "translation"

FILTERS = ("all", "hymn", "translation", "transliteration")
PAGE_SIZE = 50


def _hymn_title(mandala: int, hymn: Hymn) -> str:
    return f"Mandala {mandala} • Hymn {hymn.hymn_number}"


def _hymn_subtitle(hymn: Hymn) -> str:
    return f"{hymn.addressee} • {hymn.group_name}"


def _hymn_record(mandala: int, hymn: Hymn, field: str, matched_text: Optional[str] = None) -> MatchRecord:
    return MatchRecord(
        mandala=mandala,
        hymn=hymn.hymn_number,
        kind="hymn",
        title=_hymn_title(mandala, hymn),
        subtitle=_hymn_subtitle(hymn),
        matched_field=field,
        matched_text=matched_text,
    )


def _verse_record(mandala: int, hymn: Hymn, verse: Verse, field: str, text: Optional[str], query: str) -> MatchRecord:
    return MatchRecord(
        mandala=mandala,
        hymn=hymn.hymn_number,
        verse=verse.verse_number,
        kind="verse",
        title=f"{_hymn_title(mandala, hymn)} • Verse {verse.verse_number}",
        subtitle=_hymn_subtitle(hymn),
        matched_field=field,
        matched_text=text,
        snippet=snippet(text, query) if text is not None else None,
    )


def scan(corpus: Corpus, query: str) -> List[MatchRecord]:
    """
    Scan every mandala, hymn and verse for the query.

    Each matching field yields its own record, in corpus order. Within a
    verse the fields are checked as verse number, devanagari text,
    transliteration, translation.

    Args:
        corpus: Loaded corpus
        query: Raw user query

    Returns:
        List of MatchRecord objects (may contain duplicates, see dedupe)
    """
    if not query or not query.strip():
        return []

    records: List[MatchRecord] = []

    for mandala in corpus.mandalas:
        m = mandala.mandala_number
        m_str = str(m)

        # A hit on the mandala number lists the mandala and all of its hymns.
        if matches(m_str, query) or matches(f"mandala {m_str}", query):
            records.append(MatchRecord(
                mandala=m,
                hymn=None,
                kind="mandala",
                title=f"Mandala {m}",
                subtitle=f"{len(mandala.hymns)} hymns",
                matched_field=MANDALA_NUMBER,
            ))
            for hymn in mandala.hymns:
                records.append(_hymn_record(m, hymn, MANDALA_NUMBER))

        for hymn in mandala.hymns:
            h_str = str(hymn.hymn_number)
            if matches(h_str, query) or matches(f"hymn {h_str}", query):
                records.append(_hymn_record(m, hymn, HYMN_NUMBER))

            if matches(hymn.addressee, query):
                records.append(_hymn_record(m, hymn, ADDRESSEE, hymn.addressee))

            if matches(hymn.group_name, query):
                records.append(_hymn_record(m, hymn, GROUP_NAME, hymn.group_name))

            for verse in hymn.verses:
                if matches(verse.verse_number, query):
                    records.append(_verse_record(m, hymn, verse, VERSE_NUMBER, None, query))

                for field, text in (
                    (DEVANAGARI, verse.devanagari_text),
                    (TRANSLITERATION, verse.padapatha_text),
                    (TRANSLATION, verse.griffith_translation),
                ):
                    if matches(text, query):
                        records.append(_verse_record(m, hymn, verse, field, text, query))

    return records


def dedupe(records: Sequence[MatchRecord]) -> List[MatchRecord]:
    """Keep the first record per (mandala, hymn, verse, matched field)."""
    seen = set()
    unique: List[MatchRecord] = []
    for r in records:
        if r.key in seen:
            continue
        seen.add(r.key)
        unique.append(r)
    return unique


def filter_results(records: Sequence[MatchRecord], result_filter: str = "all") -> List[MatchRecord]:
    """
    Narrow results to one filter tab.

    "hymn" keeps hymn and mandala records; "translation" and
    "transliteration" keep records matched on that field.
    """
    if result_filter == "all":
        return list(records)
    if result_filter == "hymn":
        return [r for r in records if r.kind in ("hymn", "mandala")]
    if result_filter in (TRANSLATION, TRANSLITERATION):
        return [r for r in records if r.matched_field == result_filter]
    return list(records)


class RigvedaSearch:
    """Search engine over the Rigveda corpus."""

    def __init__(self, data_path: str = None, corpus: Optional[Corpus] = None):
        """
        Initialize the search engine.

        Args:
            data_path: Path to rigveda_complete.json (ignored if corpus given)
            corpus: Already loaded corpus
        """
        self.index_path: Optional[Path] = None
        if corpus is None:
            self.data_path = self._resolve_data_path(data_path)
            corpus = load_corpus(self.data_path)
            self.index_path = self._resolve_index_path()
        else:
            self.data_path = Path(data_path) if data_path else None

        self.corpus = corpus
        self.index: List[SearchIndexEntry] = self._load_index()

    def _resolve_data_path(self, data_path: Optional[str]) -> Path:
        if data_path:
            return Path(data_path)
        env_path = os.getenv("RIGVEDA_DATA_PATH")
        if env_path:
            return Path(env_path)
        return Path(__file__).parent.parent / "data" / "rigveda_complete.json"

    def _resolve_index_path(self) -> Optional[Path]:
        env_path = os.getenv("RIGVEDA_INDEX_PATH")
        if env_path and Path(env_path).exists():
            return Path(env_path)
        candidate = self.data_path.parent / "search_index.json"
        if candidate.exists():
            return candidate
        return None

    def _load_index(self) -> List[SearchIndexEntry]:
        """Use a prebuilt index file when present, else flatten the corpus."""
        if self.index_path is not None:
            return load_search_index(self.index_path)
        return build_search_index(self.corpus)

    def search(self, query: str, result_filter: str = "all") -> List[MatchRecord]:
        """
        Full-text search across all fields.

        Args:
            query: Search query (diacritics optional)
            result_filter: One of FILTERS

        Returns:
            Deduplicated MatchRecord list in corpus order
        """
        return filter_results(dedupe(scan(self.corpus, query)), result_filter)

    def rank(self, query: str, limit: int = 12, method: str = "rank") -> List[SearchIndexEntry]:
        """
        Select context entries for a question.

        Args:
            query: Question text
            limit: Maximum entries
            method: "rank" (token overlap) or "bm25"

        Returns:
            List of SearchIndexEntry objects, best first
        """
        if method == "bm25":
            return rank_bm25(query, self.index, limit)
        return rank_contexts(query, self.index, limit)

    def lookup_reference(self, raw: str) -> Optional[List[SearchIndexEntry]]:
        """
        Resolve a locator like "10.67.1" to index entries.

        Returns None if the text is not a reference; an empty list if it is
        a reference to something that does not exist.
        """
        ref = parse_reference(raw)
        if not ref:
            return None

        entries = hymn_entries(self.corpus, ref["mandala"], ref["hymn"])
        if entries is None:
            return []
        if ref["verse"] is not None:
            entries = [e for e in entries if e.verse == str(ref["verse"])]
        return entries

    def get_mandala(self, mandala: int):
        return get_mandala(self.corpus, mandala)

    def get_hymn(self, mandala: int, hymn: int) -> Optional[Hymn]:
        return get_hymn(self.corpus, mandala, hymn)

    def get_verse(self, mandala: int, hymn: int, verse) -> Optional[Verse]:
        return get_verse(self.corpus, mandala, hymn, verse)

    def list_mandalas(self) -> List[dict]:
        """
        List all mandalas.

        Returns:
            List of dicts with mandala, hymn_count, verse_count
        """
        return list_mandalas(self.corpus)


class SearchSession:
    """
    Holds the latest result set for one search box.

    Queries are numbered; results from an older query than the newest one
    seen are discarded. Paging and the active filter are kept per session.
    """

    def __init__(self, search: RigvedaSearch, page_size: int = PAGE_SIZE):
        self.search = search
        self.page_size = page_size
        self.query = ""
        self.all_results: List[MatchRecord] = []
        self.active_filter = "all"
        self.displayed_counts: Dict[str, int] = {}
        self._issued = 0
        self._latest_applied = 0

    def next_sequence(self) -> int:
        self._issued += 1
        return self._issued

    def run(self, query: str) -> List[MatchRecord]:
        """Run a query immediately and show its first page."""
        seq = self.next_sequence()
        self.apply(seq, query, self.search.search(query))
        return self.results

    def apply(self, seq: int, query: str, records: List[MatchRecord]) -> bool:
        """Accept a result set unless a newer one was already applied."""
        if seq < self._latest_applied:
            return False
        self._latest_applied = seq
        self.query = query
        self.all_results = list(records)
        self.active_filter = "all"
        self.displayed_counts = {}
        return True

    @property
    def displayed_count(self) -> int:
        return self.displayed_counts.get(self.active_filter, self.page_size)

    @property
    def filtered(self) -> List[MatchRecord]:
        return filter_results(self.all_results, self.active_filter)

    @property
    def results(self) -> List[MatchRecord]:
        return self.filtered[: self.displayed_count]

    @property
    def has_more(self) -> bool:
        return len(self.filtered) > self.displayed_count

    def load_more(self) -> List[MatchRecord]:
        self.displayed_counts[self.active_filter] = self.displayed_count + self.page_size
        return self.results

    def set_filter(self, result_filter: str) -> List[MatchRecord]:
        if result_filter not in FILTERS:
            raise ValueError(f"Unknown filter: {result_filter}")
        self.active_filter = result_filter
        return self.results


if __name__ == "__main__":
    load_dotenv()
    search = RigvedaSearch()

    print(f"Loaded {len(search.index)} verses")

    if search.index:
        results = search.search("agni")
        print("\nSearch results for 'agni':")
        for r in results[:5]:
            print(f"{r.title}  [{r.matched_field}] {r.snippet or r.subtitle}")
