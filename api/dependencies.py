from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from syllabus_sync.importing import (
    EventRepository,
    ImportConfig,
    ImportPipeline,
    ImportStoragePaths,
    LocalImportStorage,
    ParserAPIClient,
    RemoteSyllabusParser,
    SqlAlchemyEventRepository,
)


@lru_cache(maxsize=1)
def get_config() -> ImportConfig:
    return ImportConfig.from_env()


@lru_cache(maxsize=1)
def get_repo() -> EventRepository:
    return SqlAlchemyEventRepository(get_config().database_url)


@lru_cache(maxsize=1)
def get_storage() -> LocalImportStorage:
    return LocalImportStorage(ImportStoragePaths(Path(get_config().storage_root)))


@lru_cache(maxsize=1)
def get_pipeline() -> ImportPipeline:
    # Docling is heavy to import; only the served app pays for it.
    from syllabus_sync.importing.engine import DoclingSyllabusExtractor

    config = get_config()
    client = ParserAPIClient(config.parser_client_config())
    return ImportPipeline(
        extractor=DoclingSyllabusExtractor(perform_ocr=config.perform_ocr),
        parser=RemoteSyllabusParser(client, timezone=config.timezone),
        event_store=get_repo(),
        storage=get_storage(),
        progress_config=config.progress,
        preview_max_dimension=config.preview_max_dimension,
    )
