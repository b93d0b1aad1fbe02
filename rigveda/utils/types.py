from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Verse:
    """A verse with its three text renderings."""
    verse_number: str
    devanagari_text: str = ""
    padapatha_text: str = ""
    griffith_translation: str = ""


@dataclass
class Hymn:
    """A hymn (sukta) with shared addressee/group metadata."""
    hymn_number: int
    addressee: str = ""
    group_name: str = ""
    verses: List[Verse] = field(default_factory=list)


@dataclass
class Mandala:
    mandala_number: int
    hymns: List[Hymn] = field(default_factory=list)


@dataclass
class Corpus:
    """The whole Rigveda, loaded once and never mutated."""
    mandalas: List[Mandala] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchIndexEntry:
    """Flattened per-verse record used for ranking and context assembly."""
    mandala: int
    hymn: int
    verse: str
    title: str = ""
    group: Optional[str] = None
    verse_count: Optional[int] = None
    text: str = ""

    @property
    def ref(self) -> str:
        return f"{self.mandala}.{self.hymn}.{self.verse}"


@dataclass
class MatchRecord:
    """A single (location, matched field) hit from a corpus scan."""
    mandala: int
    hymn: Optional[int]
    kind: str  # "mandala", "hymn" or "verse"
    title: str
    subtitle: str
    matched_field: str
    verse: Optional[str] = None
    snippet: Optional[str] = None
    matched_text: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.mandala, self.hymn, self.verse, self.matched_field)

