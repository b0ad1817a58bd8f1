"""
Example: import a real syllabus PDF using Docling + the remote parser + SQLite.

Usage:
    python3 import_demo.py --pdf /path/to/syllabus.pdf --parser-url http://localhost:3000
"""

import argparse
import asyncio
import uuid
from pathlib import Path

from syllabus_sync.importing import (
    ImportConfig,
    ImportPipeline,
    ImportStoragePaths,
    LocalImportStorage,
    ParserAPIClient,
    RemoteSyllabusParser,
    SessionSnapshot,
    SqlAlchemyEventRepository,
)
from syllabus_sync.importing.engine import DoclingSyllabusExtractor
from syllabus_sync.logging_config import setup_logging


def print_progress(snap: SessionSnapshot) -> None:
    print(f"[{snap.status.value:>9}] {snap.progress * 100:5.1f}%  {snap.status_message}")


async def run(args: argparse.Namespace) -> bool:
    config = ImportConfig.from_env()
    config.parser_base_url = args.parser_url or config.parser_base_url
    config.timezone = args.timezone or config.timezone

    storage = LocalImportStorage(ImportStoragePaths(args.storage_root))
    pdf_path = storage.copy_upload(uuid.uuid4().hex, args.pdf)

    repo = SqlAlchemyEventRepository(f"sqlite+pysqlite:///{args.db}")
    async with ParserAPIClient(config.parser_client_config()) as client:
        pipeline = ImportPipeline(
            extractor=DoclingSyllabusExtractor(perform_ocr=args.perform_ocr),
            parser=RemoteSyllabusParser(client, timezone=config.timezone),
            event_store=repo,
            storage=storage,
            progress_config=config.progress,
            preview_max_dimension=config.preview_max_dimension,
        )
        pipeline.session.add_listener(print_progress)
        print(f"Starting import for {args.pdf}")
        ok = await pipeline.start_import(pdf_path)

    snap = pipeline.session.snapshot()
    if ok:
        print(f"Imported {len(snap.events)} events")
        if snap.diagnostics:
            print(snap.diagnostics.summary())
        for event in snap.events:
            print(f"  {event.start:%Y-%m-%d %H:%M}  {event.course_code:<10} {event.type.value:<10} {event.title}")
    elif snap.error_state:
        print(f"Import failed ({snap.error_state.kind.value}): {snap.error_state.message}")
    return ok


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--pdf", required=True, type=Path, help="Path to the syllabus PDF")
    parser.add_argument("--db", default=Path("./data/syllabus_sync.db"), type=Path, help="SQLite DB path")
    parser.add_argument("--storage-root", default=Path("./data"), type=Path, help="Storage root for uploads/artifacts")
    parser.add_argument("--parser-url", default=None, help="Base URL of the parsing service")
    parser.add_argument("--timezone", default=None, help="IANA timezone sent with the parse request")
    parser.add_argument("--perform-ocr", action="store_true", help="Enable OCR")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args()

    if not args.pdf.exists():
        raise FileNotFoundError(f"PDF not found: {args.pdf}")
    args.db.parent.mkdir(parents=True, exist_ok=True)

    setup_logging(args.log_level)
    ok = asyncio.run(run(args))
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    main()
