from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF
from docling.datamodel.accelerator_options import AcceleratorDevice, AcceleratorOptions
from docling.datamodel.base_models import InputFormat
from docling.datamodel.pipeline_options import PdfPipelineOptions, RapidOcrOptions
from docling.document_converter import DocumentConverter, PdfFormatOption
from pypdf import PdfReader

from .errors import ExtractionError
from .models import StructuredExtraction
from .session import Source

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


class SyllabusExtractor:
    """
    Abstract document extractor. Implementations should be stateless and
    reusable across imports.
    """

    async def preview(self, source: Source, max_dimension: int = 600) -> Optional[bytes]:
        """
        Best-effort PNG preview of the first page. Never raises; returns None
        when no preview can be produced.
        """
        return None

    async def count_pages(self, source: Source) -> Optional[int]:
        """
        Optional lightweight page counter. Return None if not supported.
        """
        return None

    async def extract_structured(self, source: Source) -> StructuredExtraction:
        raise NotImplementedError


class DoclingSyllabusExtractor(SyllabusExtractor):
    """
    Docling-based extractor (with optional OCR via Docling's PDF pipeline).

    Plain text is Docling's text export. The table text walks the document in
    reading order: text items become one line each and tables are flattened to
    tab-separated rows, which is the shape the parsing service expects.
    Conversion is CPU-bound, so it runs in a worker thread.
    """

    def __init__(self, perform_ocr: bool = False, engine_version: str = "docling-latest"):
        self.engine_version = engine_version

        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_ocr = perform_ocr
        # Schedules usually live in tables, so table structure is always on.
        pipeline_options.do_table_structure = True
        if perform_ocr:
            pipeline_options.ocr_options = RapidOcrOptions()
        pipeline_options.accelerator_options = AcceleratorOptions(num_threads=4, device=AcceleratorDevice.AUTO)

        self.converter = DocumentConverter(
            format_options={
                InputFormat.PDF: PdfFormatOption(pipeline_options=pipeline_options),
            }
        )

    async def preview(self, source: Source, max_dimension: int = 600) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(self._render_preview, Path(source), max_dimension)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Preview rendering failed for %s: %s", source, exc)
            return None

    async def count_pages(self, source: Source) -> Optional[int]:
        try:
            return await asyncio.to_thread(lambda: len(PdfReader(str(source)).pages))
        except Exception:  # noqa: BLE001
            return None

    async def extract_structured(self, source: Source) -> StructuredExtraction:
        return await asyncio.to_thread(self._extract, Path(source))

    def _extract(self, pdf_path: Path) -> StructuredExtraction:
        if not pdf_path.exists():
            raise ExtractionError(f"PDF not found at {pdf_path}")
        try:
            result = self.converter.convert(pdf_path)
            doc = result.document
        except Exception as exc:
            raise ExtractionError(f"Failed to read PDF '{pdf_path}': {exc}") from exc

        plain_text = doc.export_to_text().strip()
        table_text = self._build_table_text(doc)
        page_count = len(doc.pages)
        logger.info(
            "Extracted %s: %d pages, %d plain chars, %d table rows",
            pdf_path.name,
            page_count,
            len(plain_text),
            table_text.count("\n") + 1 if table_text else 0,
        )
        return StructuredExtraction(plain_text=plain_text, table_text=table_text, page_count=page_count)

    def _build_table_text(self, doc) -> str:
        rows: List[str] = []
        for item, _level in doc.iterate_items():
            grid = getattr(getattr(item, "data", None), "grid", None)
            if grid is not None:
                rows.extend(self._table_rows(grid))
                continue
            text = _clean_cell(getattr(item, "text", "") or "")
            if text:
                rows.append(text)
        return "\n".join(rows)

    def _table_rows(self, grid) -> List[str]:
        rows: List[str] = []
        for row in grid:
            cells = [_clean_cell(getattr(cell, "text", "") or "") for cell in row]
            if any(cells):
                rows.append("\t".join(cells))
        return rows

    def _render_preview(self, pdf_path: Path, max_dimension: int) -> Optional[bytes]:
        doc = fitz.open(pdf_path)
        try:
            if doc.page_count == 0:
                return None
            page = doc.load_page(0)
            longest = max(page.rect.width, page.rect.height)
            scale = max_dimension / longest if longest else 1.0
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
            return pix.tobytes("png")
        finally:
            doc.close()


def _clean_cell(text: str) -> str:
    # Tabs and newlines are the delimiters of the table text.
    return _WHITESPACE_RE.sub(" ", text).strip()
