from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List

from tqdm import tqdm
from dotenv import load_dotenv

from .utils.loaders import (
    hymn_to_entries,
    load_corpus,
    load_legacy_dir,
    save_corpus,
    save_search_index,
)
from .utils.types import Corpus, SearchIndexEntry


def build_entries(corpus: Corpus, *, progress: bool = True) -> List[SearchIndexEntry]:
    """Flatten the corpus into index entries, reporting progress per hymn."""
    hymns = [(m.mandala_number, h) for m in corpus.mandalas for h in m.hymns]
    entries: List[SearchIndexEntry] = []
    for mandala, hymn in tqdm(hymns, desc="Indexing hymns", disable=not progress):
        entries.extend(hymn_to_entries(mandala, hymn))
    return entries


def validate_corpus(corpus: Corpus) -> List[str]:
    """Return human-readable problems found in the corpus."""
    problems: List[str] = []
    seen_mandalas = set()
    for m in corpus.mandalas:
        if m.mandala_number in seen_mandalas:
            problems.append(f"duplicate mandala {m.mandala_number}")
        seen_mandalas.add(m.mandala_number)

        seen_hymns = set()
        for h in m.hymns:
            if h.hymn_number in seen_hymns:
                problems.append(f"duplicate hymn {m.mandala_number}.{h.hymn_number}")
            seen_hymns.add(h.hymn_number)
            if not h.verses:
                problems.append(f"hymn {m.mandala_number}.{h.hymn_number} has no verses")
    return problems


def main() -> None:
    load_dotenv()

    ap = argparse.ArgumentParser(description="Build the Rigveda corpus and search index.")
    src = ap.add_mutually_exclusive_group()
    src.add_argument("--corpus", default=os.getenv("RIGVEDA_DATA_PATH"), help="Path to rigveda_complete.json.")
    src.add_argument("--legacy-dir", help="Directory with mandala<N>.json files in the older token shape.")
    ap.add_argument("--out", required=True, help="Output directory for rigveda_complete.json and search_index.json.")
    ap.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    args = ap.parse_args()

    if args.legacy_dir:
        corpus = load_legacy_dir(args.legacy_dir)
    elif args.corpus:
        corpus = load_corpus(args.corpus)
    else:
        ap.error("one of --corpus or --legacy-dir is required")

    for problem in validate_corpus(corpus):
        print(f"Warning: {problem}", file=sys.stderr)

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    entries = build_entries(corpus, progress=not args.no_progress)

    corpus_path = out_dir / "rigveda_complete.json"
    index_path = out_dir / "search_index.json"

    save_corpus(corpus, corpus_path)
    save_search_index(entries, index_path)

    print("Built corpus artifacts successfully:")
    print(f"- {corpus_path} ({len(corpus.mandalas)} mandalas)")
    print(f"- {index_path} ({len(entries)} verses)")


if __name__ == "__main__":
    main()
