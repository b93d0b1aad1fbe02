from __future__ import annotations

import json
import random
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .types import Corpus, Hymn, Mandala, SearchIndexEntry, Verse


def _verse_from_dict(v: Dict[str, Any]) -> Verse:
    return Verse(
        verse_number=str(v.get("verse_number", "")),
        devanagari_text=v.get("devanagari_text") or "",
        padapatha_text=v.get("padapatha_text") or "",
        griffith_translation=v.get("griffith_translation") or "",
    )


def corpus_from_dict(raw: Dict[str, Any]) -> Corpus:
    """Build a Corpus from the parsed JSON document."""
    if not isinstance(raw, dict) or not isinstance(raw.get("mandalas"), list):
        raise ValueError("corpus document must contain a 'mandalas' list")

    mandalas: List[Mandala] = []
    for m in raw["mandalas"]:
        hymns = [
            Hymn(
                hymn_number=int(h["hymn_number"]),
                addressee=h.get("addressee") or "",
                group_name=h.get("group_name") or "",
                verses=[_verse_from_dict(v) for v in h.get("verses") or []],
            )
            for h in m.get("hymns") or []
        ]
        hymns.sort(key=lambda x: x.hymn_number)
        mandalas.append(Mandala(mandala_number=int(m["mandala_number"]), hymns=hymns))
    mandalas.sort(key=lambda x: x.mandala_number)
    return Corpus(mandalas=mandalas, metadata=dict(raw.get("metadata") or {}))


def load_corpus(path: str | Path) -> Corpus:
    """Load the complete corpus (rigveda_complete.json)."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Corpus file not found at {p}")
    return corpus_from_dict(json.loads(p.read_text(encoding="utf-8")))


def corpus_to_dict(corpus: Corpus) -> Dict[str, Any]:
    return {
        "metadata": corpus.metadata,
        "mandalas": [
            {
                "mandala_number": m.mandala_number,
                "hymns": [
                    {
                        "hymn_number": h.hymn_number,
                        "group_name": h.group_name,
                        "addressee": h.addressee,
                        "verses": [
                            {
                                "verse_number": v.verse_number,
                                "devanagari_text": v.devanagari_text,
                                "padapatha_text": v.padapatha_text,
                                "griffith_translation": v.griffith_translation,
                            }
                            for v in h.verses
                        ],
                    }
                    for h in m.hymns
                ],
            }
            for m in corpus.mandalas
        ],
    }


def save_corpus(corpus: Corpus, path: str | Path) -> None:
    p = Path(path)
    p.write_text(json.dumps(corpus_to_dict(corpus), ensure_ascii=False, indent=2), encoding="utf-8")


# Older per-mandala files carry token arrays instead of flat strings.
def _join_tokens(tokens: Iterable[Dict[str, Any]]) -> tuple[str, str]:
    words: List[str] = []
    translits: List[str] = []
    for tok in tokens:
        if tok.get("sep"):
            words.append(tok["sep"])
            continue
        if tok.get("word"):
            words.append(tok["word"])
        if tok.get("translit"):
            translits.append(tok["translit"])
    return " ".join(words), " ".join(translits)


def verse_from_legacy(v: Dict[str, Any]) -> Verse:
    """Convert a token-array verse into the flat-string shape."""
    lines = v.get("sanskrit_lines")
    if not lines and v.get("sanskrit"):
        lines = [v["sanskrit"]]

    deva_lines: List[str] = []
    translit_parts: List[str] = []
    for line in lines or []:
        deva, translit = _join_tokens(line)
        if deva:
            deva_lines.append(deva)
        if translit:
            translit_parts.append(translit)

    return Verse(
        verse_number=str(v.get("number", "")),
        devanagari_text="\n".join(deva_lines),
        padapatha_text=" ".join(translit_parts),
        griffith_translation=v.get("translation") or "",
    )


def hymn_from_legacy(h: Dict[str, Any]) -> Hymn:
    return Hymn(
        hymn_number=int(h["sukta"]),
        addressee=h.get("title") or "",
        group_name=h.get("group") or "",
        verses=[verse_from_legacy(v) for v in h.get("verses") or []],
    )


_LEGACY_NAME_RE = re.compile(r"^mandala(\d+)\.json$")


def load_legacy_dir(path: str | Path) -> Corpus:
    """Load mandala<N>.json files in the older token-array shape."""
    d = Path(path)
    if not d.is_dir():
        raise FileNotFoundError(f"Legacy data directory not found at {d}")

    mandalas: List[Mandala] = []
    for f in d.iterdir():
        m = _LEGACY_NAME_RE.match(f.name)
        if not m:
            continue
        raw = json.loads(f.read_text(encoding="utf-8"))
        hymns = [hymn_from_legacy(h) for h in raw.get("hymns") or []]
        hymns.sort(key=lambda x: x.hymn_number)
        mandalas.append(Mandala(mandala_number=int(m.group(1)), hymns=hymns))
    mandalas.sort(key=lambda x: x.mandala_number)
    return Corpus(mandalas=mandalas, metadata={"source": "legacy"})


def get_mandala(corpus: Corpus, mandala: int) -> Optional[Mandala]:
    for m in corpus.mandalas:
        if m.mandala_number == mandala:
            return m
    return None


def get_hymn(corpus: Corpus, mandala: int, hymn: int) -> Optional[Hymn]:
    m = get_mandala(corpus, mandala)
    if m is None:
        return None
    for h in m.hymns:
        if h.hymn_number == hymn:
            return h
    return None


def get_verse(corpus: Corpus, mandala: int, hymn: int, verse: str | int) -> Optional[Verse]:
    h = get_hymn(corpus, mandala, hymn)
    if h is None:
        return None
    label = str(verse)
    for v in h.verses:
        if v.verse_number == label:
            return v
    return None


def list_mandalas(corpus: Corpus) -> List[dict]:
    """Summaries with hymn and verse counts per mandala."""
    return [
        {
            "mandala": m.mandala_number,
            "hymn_count": len(m.hymns),
            "verse_count": sum(len(h.verses) for h in m.hymns),
        }
        for m in corpus.mandalas
    ]


def hymn_to_entries(mandala: int, h: Hymn) -> List[SearchIndexEntry]:
    return [
        SearchIndexEntry(
            mandala=mandala,
            hymn=h.hymn_number,
            verse=v.verse_number,
            title=h.addressee,
            group=h.group_name,
            verse_count=len(h.verses),
            text=" ".join(
                part
                for part in (v.griffith_translation, v.devanagari_text, v.padapatha_text)
                if part
            ),
        )
        for v in h.verses
    ]


def build_search_index(corpus: Corpus) -> List[SearchIndexEntry]:
    """One entry per verse, in corpus order."""
    entries: List[SearchIndexEntry] = []
    for m in corpus.mandalas:
        for h in m.hymns:
            entries.extend(hymn_to_entries(m.mandala_number, h))
    return entries


def hymn_entries(corpus: Corpus, mandala: int, hymn: int) -> Optional[List[SearchIndexEntry]]:
    """Index entries for a single hymn, or None if it does not exist."""
    h = get_hymn(corpus, mandala, hymn)
    if h is None:
        return None
    return hymn_to_entries(mandala, h)


def save_search_index(entries: Sequence[SearchIndexEntry], path: str | Path) -> None:
    p = Path(path)
    data = []
    for e in entries:
        data.append(
            {
                "mandala": e.mandala,
                "sukta": e.hymn,
                "verse": e.verse,
                "title": e.title,
                "group": e.group,
                "stanzas": e.verse_count,
                "text": e.text,
            }
        )
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def load_search_index(path: str | Path) -> List[SearchIndexEntry]:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    entries: List[SearchIndexEntry] = []
    for e in raw:
        stanzas = e.get("stanzas")
        entries.append(
            SearchIndexEntry(
                mandala=int(e["mandala"]),
                hymn=int(e["sukta"]),
                verse=str(e["verse"]),
                title=e.get("title") or "",
                group=e.get("group"),
                verse_count=int(stanzas) if stanzas is not None else None,
                text=e.get("text") or "",
            )
        )
    return entries


def random_verse(corpus: Corpus, rng: Optional[random.Random] = None) -> Optional[dict]:
    """Pick a random verse; None if the corpus has nothing to pick from."""
    rng = rng or random.Random()
    mandalas = [m for m in corpus.mandalas if any(h.verses for h in m.hymns)]
    if not mandalas:
        return None
    m = rng.choice(mandalas)
    h = rng.choice([h for h in m.hymns if h.verses])
    v = rng.choice(h.verses)
    return {
        "mandala": m.mandala_number,
        "sukta": h.hymn_number,
        "verse": v.verse_number,
        "title": h.addressee,
        "translation": v.griffith_translation,
        "devanagari_text": v.devanagari_text,
        "padapatha_text": v.padapatha_text,
    }
