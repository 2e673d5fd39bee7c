#!/usr/bin/env python3
"""Generate sample promissory notes for validation.

Notes are generated with valid schedules, pushed through a note store (so the
same invariants as production writes apply) and written to a JSON file. With
``--postgres`` they are loaded into PostgreSQL instead of the in-memory store.
"""

import argparse
import json
import logging
import sys
import time
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from note_engine.config import NoteEngineConfig
from note_engine.engine.summary import portfolio_totals
from note_engine.exceptions import NoteEngineError
from note_engine.generators import PromissoryNoteGenerator
from note_engine.logging import setup_logging
from note_engine.serialization import to_dict
from note_engine.store import InMemoryNoteStore, NoteStore

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate sample promissory notes")
    parser.add_argument("--count", type=int, default=25, help="Number of notes to generate")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (default: SEED or 42)")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="Reference date (YYYY-MM-DD)")
    parser.add_argument(
        "--output",
        type=Path,
        default=project_root / "local" / "notes.json",
        help="JSON output file",
    )
    parser.add_argument("--postgres", action="store_true", help="Load notes into PostgreSQL")
    parser.add_argument("--log-format", choices=["standard", "json"], default="standard")
    return parser.parse_args()


def build_store(config: NoteEngineConfig, use_postgres: bool) -> NoteStore:
    """Pick the store the notes are written through."""
    if not use_postgres:
        return InMemoryNoteStore()

    from note_engine.store.postgres import PostgresNoteStore

    store = PostgresNoteStore(config.postgres)
    store.create_schema()
    return store


def save_json(notes: list, filepath: Path) -> None:
    """Save notes to a JSON file."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump([to_dict(note) for note in notes], f, indent=2, ensure_ascii=False)
    logger.info("Saved %d notes to %s", len(notes), filepath)


def main() -> int:
    """Generate, store and export sample notes."""
    args = parse_args()
    config = NoteEngineConfig.from_env()
    setup_logging(config.log_level, args.log_format)

    seed = args.seed if args.seed is not None else (config.seed if config.seed is not None else 42)
    generator = PromissoryNoteGenerator(seed=seed, config=config.schedule)

    try:
        store = build_store(config, args.postgres)
        t0 = time.perf_counter()
        for note in generator.generate_batch(args.count, today=args.today):
            store.create_note(note)
        logger.info("Stored %d notes in %.2fs", args.count, time.perf_counter() - t0)
        notes = store.list_notes()
    except NoteEngineError as e:
        logger.error("Sample generation failed: %s", e)
        return 1

    save_json(notes, args.output)
    for status, bucket in portfolio_totals(notes).items():
        logger.info("%-10s %4d notes  %12s", status.value, bucket.count, bucket.total_amount)
    return 0


if __name__ == "__main__":
    sys.exit(main())
