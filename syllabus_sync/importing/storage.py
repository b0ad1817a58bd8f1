from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .models import ParseDiagnostics, StructuredExtraction

logger = logging.getLogger(__name__)


@dataclass
class ImportStoragePaths:
    root: Path

    def uploads_dir(self) -> Path:
        return self.root / "uploads"

    def upload_path(self, upload_id: str) -> Path:
        return self.uploads_dir() / f"{upload_id}.pdf"

    def import_dir(self, request_id: str) -> Path:
        return self.root / "imports" / str(request_id)

    def preview_path(self, request_id: str) -> Path:
        return self.import_dir(request_id) / "preview.png"

    def extraction_path(self, request_id: str) -> Path:
        return self.import_dir(request_id) / "extraction.json"

    def parser_output_path(self, request_id: str) -> Path:
        return self.import_dir(request_id) / "parser_output.json"


class LocalImportStorage:
    """
    Manages the filesystem layout for uploaded syllabi and the per-import
    artifacts (preview, extraction output, raw parser response).
    """

    def __init__(self, storage_paths: ImportStoragePaths):
        self.paths = storage_paths

    def ensure_import_dir(self, request_id: str) -> Path:
        base = self.paths.import_dir(request_id)
        base.mkdir(parents=True, exist_ok=True)
        return base

    def save_upload(self, upload_id: str, data: bytes) -> Path:
        target = self.paths.upload_path(upload_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored upload %s (%d bytes) at %s", upload_id, len(data), target)
        return target

    def copy_upload(self, upload_id: str, source_pdf: Path) -> Path:
        target = self.paths.upload_path(upload_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source_pdf, target)
        return target

    def write_preview(self, request_id: str, png_bytes: bytes) -> Path:
        self.ensure_import_dir(request_id)
        target = self.paths.preview_path(request_id)
        target.write_bytes(png_bytes)
        return target

    def write_extraction(self, request_id: str, extraction: StructuredExtraction) -> Path:
        self.ensure_import_dir(request_id)
        target = self.paths.extraction_path(request_id)
        self._write_json(
            target,
            {
                "pageCount": extraction.page_count,
                "plainText": extraction.plain_text,
                "tableText": extraction.table_text,
            },
        )
        return target

    def write_parser_output(
        self,
        request_id: str,
        raw_response: Optional[str],
        diagnostics: Optional[ParseDiagnostics],
    ) -> Path:
        self.ensure_import_dir(request_id)
        target = self.paths.parser_output_path(request_id)
        self._write_json(
            target,
            {
                "rawResponse": raw_response,
                "diagnostics": diagnostics.to_dict() if diagnostics else None,
            },
        )
        return target

    def read_parser_output(self, request_id: str) -> Optional[Dict[str, Any]]:
        path = self.paths.parser_output_path(request_id)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def _write_json(target: Path, payload: Dict[str, Any]) -> None:
        with target.open("w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
