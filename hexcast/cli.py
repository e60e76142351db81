"""
hexcast — I-Ching casting, hexagram lookup and a reading journal.

Usage:
    hexcast cast -q "Your question here"
    hexcast cast --manual 6 7 8 9 7 8
    hexcast browse 24
    hexcast journal list
    hexcast journal summary <entry-id>
"""

from __future__ import annotations
import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import List, Optional

from rich.markup import escape

from .catalog import CatalogCache, get_record
from .config import NOTE_WORD_LIMIT, Settings
from .display import console, display_hexagram, display_reading, format_hexagram_lines, journal_table
from .errors import NarrativeError
from .journal import JournalContext, JournalService, LocalJournalStore, RemoteJournalStore, word_count
from .lines import ROLL_METHODS
from .narrative import EdgeFunctionBackend, NarrativeService, OpenRouterBackend
from .reading import CastingSession, Reading, manual_reading

logger = logging.getLogger("hexcast")


def build_journal(settings: Settings) -> JournalService:
    context = JournalContext(user_id=settings.user_id, access_token=settings.access_token,
                             premium=settings.premium)
    remote = None
    if settings.has_backend:
        remote = RemoteJournalStore(settings.supabase_url, settings.supabase_anon_key,
                                    access_token=settings.access_token)
    local = LocalJournalStore(settings.data_dir, user_id=settings.user_id)
    return JournalService(local, remote=remote, context=context)


def build_narrative(settings: Settings, journal: JournalService) -> Optional[NarrativeService]:
    if settings.has_backend and journal.context.remote_enabled:
        backend = EdgeFunctionBackend(settings.supabase_url, settings.supabase_anon_key,
                                      user_id=settings.user_id, access_token=settings.access_token)
    elif settings.openrouter_api_key:
        backend = OpenRouterBackend(settings.openrouter_api_key, model=settings.model)
    else:
        return None
    return NarrativeService(journal, backend)


def save_reading(reading: Reading, path: str):
    """Write a reading as JSON, or append one line to a .jsonl file."""
    payload = reading.to_dict()
    try:
        save_path = Path(path)
        if save_path.suffix.lower() == ".jsonl":
            with open(save_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")
        else:
            with open(save_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        console.print(f"[green]✓ Reading saved to {escape(str(save_path))}[/green]")
    except OSError as e:
        logger.error(f"Failed to save reading: {e}")


def cast_step_by_step(session: CastingSession) -> Reading:
    """Cast one line per Enter press, showing the hexagram as it builds."""
    while session.reading is None:
        number = len(session.lines) + 1
        console.input(f"[bold cyan]Press Enter to cast line {number} of 6[/bold cyan] ")
        line = session.cast_line()
        console.print(f"[dim]Line {number}:[/dim] {line.roll}")
        for row in format_hexagram_lines(session.lines):
            console.print(f"  {row}")
    return session.reading


def cmd_cast(args, settings: Settings) -> int:
    if args.note and word_count(args.note) > NOTE_WORD_LIMIT:
        print(f"Error: journal notes are limited to {NOTE_WORD_LIMIT} words.", file=sys.stderr)
        return 2

    catalog_source = args.catalog or settings.catalog_url
    with console.status("[bold cyan]Consulting the oracle...[/bold cyan]", spinner="dots"):
        catalog = CatalogCache(catalog_source).get()
    if not catalog:
        console.print("[yellow]Hexagram texts are unavailable; showing lines only.[/yellow]")

    question = args.query
    if question is None and not args.manual:
        question = console.input("[bold cyan]Enter your question (optional):[/bold cyan] ").strip()
    question = question or None

    if args.manual:
        reading = manual_reading(args.manual, catalog, question=question)
        if reading is None:
            bad = [f"line {i}: {value!r}" for i, value in enumerate(args.manual, start=1)
                   if value not in ("6", "7", "8", "9")]
            print(f"Error: manual lines must be 6, 7, 8 or 9 ({', '.join(bad)}).", file=sys.stderr)
            return 2
    else:
        rng = random.Random(args.seed) if args.seed is not None else None
        session = CastingSession(catalog, question=question, rng=rng, method=args.method)
        reading = cast_step_by_step(session) if args.step else session.cast_all()

    display_reading(reading)

    if args.save:
        save_reading(reading, args.save)
    if args.journal:
        journal = build_journal(settings)
        journal.load()
        entry_id = journal.add_entry(reading, note=args.note or "")
        console.print(f"[green]✓ Saved to journal as {entry_id}[/green]")
    return 0


def cmd_browse(args, settings: Settings) -> int:
    catalog = CatalogCache(args.catalog or settings.catalog_url).get()
    record = get_record(catalog, args.number)
    if record is None:
        print(f"Error: hexagram {args.number} not found in catalog.", file=sys.stderr)
        return 1
    display_hexagram(record)
    return 0


def cmd_journal(args, settings: Settings) -> int:
    journal = build_journal(settings)
    entries = journal.load()

    if args.journal_command == "list":
        if not entries:
            console.print("[dim]No journal entries yet.[/dim]")
        else:
            console.print(journal_table(entries))
        return 0

    if args.journal_command == "summary":
        service = build_narrative(settings, journal)
        if service is None:
            print("Error: no narrative backend configured (set OPENROUTER_API_KEY).", file=sys.stderr)
            return 1
        try:
            with console.status("[bold cyan]Asking the oracle...[/bold cyan]", spinner="dots"):
                text = service.request(args.entry_id)
        except NarrativeError as e:
            logger.error(f"Unable to receive insight: {e}")
            return 1
        console.print(f"\n[italic green]{escape(text)}[/italic green]\n")
        return 0

    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hexcast",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    cast = sub.add_parser("cast", help="Cast a hexagram")
    cast.add_argument("-q", "--query", help="Your question or situation to divine")
    cast.add_argument("--manual", nargs=6, metavar="N",
                      help="Six line values (6/7/8/9), bottom line first")
    cast.add_argument("--method", choices=sorted(ROLL_METHODS), default="uniform",
                      help="Random draw method (default: uniform)")
    cast.add_argument("--step", action="store_true", help="Cast one line at a time, pressing Enter for each")
    cast.add_argument("--seed", type=int, help="Seed the random draw for a repeatable cast")
    cast.add_argument("--catalog", help="Catalog URL or JSON file (default: $HEXCAST_CATALOG_URL)")
    cast.add_argument("--save", help="Save reading to JSON file (.jsonl appends)")
    cast.add_argument("--journal", action="store_true", help="Also save the reading to the journal")
    cast.add_argument("--note", help="Journal note to store with the reading")
    cast.set_defaults(handler=cmd_cast)

    browse = sub.add_parser("browse", help="Show a hexagram and all of its line texts")
    browse.add_argument("number", type=int, help="Hexagram number (1-64)")
    browse.add_argument("--catalog", help="Catalog URL or JSON file")
    browse.set_defaults(handler=cmd_browse)

    journal = sub.add_parser("journal", help="Work with saved readings")
    journal_sub = journal.add_subparsers(dest="journal_command", required=True)
    journal_sub.add_parser("list", help="List saved readings")
    summary = journal_sub.add_parser("summary", help="Get (or generate) the AI summary of an entry")
    summary.add_argument("entry_id")
    journal.set_defaults(handler=cmd_journal)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    settings = Settings.from_env()
    try:
        return args.handler(args, settings)
    except KeyboardInterrupt:
        print("\n\nDivination cancelled.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
