#!/usr/bin/env python3
"""
CLI interface for the Rigveda Q&A agent.
"""

import argparse
import os
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from .agent import create_agent
from .conversation import JsonFileStore
from .rag import parse_reference

HELP_TEXT = """Commands:
  /search <query>  - full-text search (diacritics optional)
  /more            - next page of search results
  /dict <word>     - Sanskrit dictionary lookup
  /verse <ref>     - show a verse, e.g. /verse 10.67.1
  /random          - show a random verse
  /mandalas        - list mandalas
  /history         - recent dictionary lookups
  /reset           - start a new conversation
  /quit            - exit"""


def check_environment():
    """Check that an API key is available."""
    if not (os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")):
        print("Error: OPENROUTER_API_KEY environment variable not set.")
        print("Please set it in a .env file or export it in your shell.")
        sys.exit(1)


def default_data_path() -> Path:
    return Path(__file__).parent.parent / "data" / "rigveda_complete.json"


def check_data(data_path: Path) -> bool:
    """Check that the corpus file exists."""
    if not data_path.exists():
        print(f"Rigveda data not found at {data_path}")
        print("Please run: rigveda-build-index --corpus <rigveda_complete.json> --out data")
        return False
    return True


def print_records(records, has_more: bool = False):
    if not records:
        print("No results.")
        return
    for r in records:
        print(f"  {r.title}  [{r.matched_field}]")
        print(f"    {r.snippet or r.subtitle}")
    if has_more:
        print("  ... (/more for more results)")


def print_verse(verse: dict):
    print(f"\n{verse['mandala']}.{verse['sukta']}.{verse['verse']}  {verse.get('title', '')}")
    print(verse.get("devanagari_text", ""))
    print(verse.get("padapatha_text", ""))
    print(verse.get("translation", ""))
    print()


def show_reference(agent, raw: str):
    ref = parse_reference(raw)
    if not ref:
        print(f"Could not parse reference: {raw}")
        return
    hymn = agent.search.get_hymn(ref["mandala"], ref["hymn"])
    if hymn is None:
        print(f"Hymn {ref['mandala']}.{ref['hymn']} not found")
        return
    verses = hymn.verses
    if ref["verse"] is not None:
        verses = [v for v in verses if v.verse_number == str(ref["verse"])]
        if not verses:
            print(f"Verse {ref['mandala']}.{ref['hymn']}.{ref['verse']} not found")
            return
    for v in verses:
        print_verse({
            "mandala": ref["mandala"],
            "sukta": hymn.hymn_number,
            "verse": v.verse_number,
            "title": hymn.addressee,
            "devanagari_text": v.devanagari_text,
            "padapatha_text": v.padapatha_text,
            "translation": v.griffith_translation,
        })


def interactive_mode(agent):
    """Run interactive conversation mode."""
    print("=" * 60)
    print("Rigveda Q&A")
    print("=" * 60)
    print()
    print("Ask questions about the Rigveda. /help lists commands.")
    print()

    while True:
        try:
            user_input = input("question> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if not user_input:
            continue

        # Handle special commands
        if user_input.startswith("/"):
            cmd, _, arg = user_input.partition(" ")
            cmd = cmd.lower()
            arg = arg.strip()

            if cmd in ["/quit", "/exit", "/q"]:
                print("Goodbye!")
                break

            elif cmd == "/reset":
                agent.reset()
                print("Conversation reset.")
                continue

            elif cmd == "/search":
                print_records(agent.search_text(arg), agent.session.has_more)
                continue

            elif cmd == "/more":
                print_records(agent.session.load_more(), agent.session.has_more)
                continue

            elif cmd == "/dict":
                try:
                    entries = agent.lookup_word(arg)
                except ValueError as e:
                    print(f"Error: {e}")
                    continue
                if not entries:
                    print("No dictionary results.")
                for e in entries:
                    print(f"  {e['sanskrit']} ({e['transliteration']}) - {e['grammar']}")
                    print(f"    {e['english']}")
                    if e.get("etymology"):
                        print(f"    Etymology: {e['etymology']}")
                continue

            elif cmd == "/history":
                for q in agent.dictionary_history.items():
                    print(f"  {q}")
                continue

            elif cmd == "/verse":
                show_reference(agent, arg)
                continue

            elif cmd == "/random":
                verse = agent.random_verse()
                if verse is None:
                    print("No verses loaded.")
                else:
                    print_verse(verse)
                continue

            elif cmd == "/mandalas":
                print("\nMandalas:")
                for m in agent.list_mandalas():
                    print(f"  Mandala {m['mandala']}: {m['hymn_count']} hymns, {m['verse_count']} verses")
                print()
                continue

            elif cmd == "/help":
                print(HELP_TEXT)
                continue

            else:
                print(f"Unknown command: {user_input}")
                continue

        # Process query
        print()
        try:
            response = agent.query(user_input)
            print(response)
        except Exception as e:
            print(f"Error: {e}")
        print()


def single_query_mode(agent, query: str):
    """Process a single query and exit."""
    try:
        response = agent.query(query)
        print(response)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """Main entry point."""
    # Load environment variables
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Rigveda Q&A Agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_TEXT,
    )
    parser.add_argument(
        "-q", "--query",
        type=str,
        help="Single query to process (non-interactive mode)"
    )
    parser.add_argument(
        "--model",
        type=str,
        default=os.getenv("OPENROUTER_MODEL", "x-ai/grok-4-fast:free"),
        help="Chat model to use (default: x-ai/grok-4-fast:free)"
    )
    parser.add_argument(
        "--data-path",
        type=str,
        default=os.getenv("RIGVEDA_DATA_PATH"),
        help="Path to rigveda_complete.json"
    )
    parser.add_argument(
        "--method",
        choices=["rank", "bm25"],
        default="rank",
        help="Context ranking method (default: rank)"
    )

    args = parser.parse_args()

    check_environment()

    data_path = Path(args.data_path) if args.data_path else default_data_path()
    if not check_data(data_path):
        sys.exit(1)

    # Create log directory per run
    logs_root = Path(__file__).parent.parent / "logs"
    logs_root.mkdir(parents=True, exist_ok=True)
    run_id = datetime.now().strftime("%Y%m%d-%H%M%S")
    run_log_dir = logs_root / run_id
    run_log_dir.mkdir(parents=True, exist_ok=True)

    history_store = JsonFileStore(logs_root / "history.json")

    try:
        print(f"Creating agent with data_path: {data_path}, model: {args.model}, log_dir: {run_log_dir}")
        agent = create_agent(
            data_path=str(data_path),
            model=args.model,
            log_dir=str(run_log_dir),
            method=args.method,
            history_store=history_store,
        )
    except Exception as e:
        print(f"Error creating agent: {e}", file=sys.stderr)
        sys.exit(1)

    if args.query:
        single_query_mode(agent, args.query)
    else:
        interactive_mode(agent)


if __name__ == "__main__":
    main()
