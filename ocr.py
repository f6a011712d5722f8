"""
ocr.py - Table recognition boundary.

This is the only module that knows about Azure Document Intelligence. It
turns an image into an `OcrResult`: every recognized table as a dense grid
of cell text plus the page text as plain lines. Downstream modules only see
grids and text, so the OCR backend can be swapped without touching the
scanner, aggregator or validator.

Merged cells are reported once, at their top-left position; the other cells
of the span stay empty and are repaired later by `grid.fill_down`.
"""

from __future__ import annotations

from typing import Any, Optional

from azure.ai.formrecognizer import DocumentAnalysisClient
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError

import config
from logging_config import get_logger
from models import OcrResult

logger = get_logger(__name__)


class CollaboratorError(Exception):
    """A third-party collaborator (OCR, classifier) failed."""


class OcrServiceError(CollaboratorError):
    """Table recognition could not be completed."""


_client: Optional[DocumentAnalysisClient] = None


def get_client() -> DocumentAnalysisClient:
    """Return a singleton Document Intelligence client."""
    global _client
    if _client is None:
        endpoint = config.AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT
        key = config.AZURE_DOCUMENT_INTELLIGENCE_KEY
        if not endpoint or not key:
            raise OcrServiceError(
                "OCR is not configured. Set AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT "
                "and AZURE_DOCUMENT_INTELLIGENCE_KEY in your .env file."
            )
        _client = DocumentAnalysisClient(endpoint=endpoint, credential=AzureKeyCredential(key))
    return _client


def table_to_grid(table: Any) -> list[list[str]]:
    """Rebuild one recognized table as a dense row-major grid."""
    rows = int(getattr(table, "row_count", 0) or 0)
    cols = int(getattr(table, "column_count", 0) or 0)
    cells = list(getattr(table, "cells", None) or [])
    for cell in cells:
        rows = max(rows, cell.row_index + 1)
        cols = max(cols, cell.column_index + 1)

    grid = [["" for _ in range(cols)] for _ in range(rows)]
    for cell in cells:
        grid[cell.row_index][cell.column_index] = (cell.content or "").strip()
    return grid


def _page_text(result: Any) -> str:
    lines = []
    for page in getattr(result, "pages", None) or []:
        for line in getattr(page, "lines", None) or []:
            if line.content:
                lines.append(line.content)
    if lines:
        return "\n".join(lines)
    return getattr(result, "content", "") or ""


def analyze_layout(image_bytes: bytes, client: Optional[DocumentAnalysisClient] = None) -> OcrResult:
    """Recognize tables and text in an image.

    Raises:
        OcrServiceError: on empty input, missing configuration, or any
            failure reported by the service.
    """
    if not image_bytes:
        raise OcrServiceError("Image is empty (0 bytes).")

    client = client or get_client()
    logger.info(
        "ocr_start | model=%s | size_kb=%.1f",
        config.OCR_MODEL,
        len(image_bytes) / 1024,
    )
    try:
        poller = client.begin_analyze_document(config.OCR_MODEL, document=image_bytes)
        result = poller.result()
    except AzureError as exc:
        logger.error(
            "ocr_failure | error_type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        raise OcrServiceError(f"OCR request failed: {exc}") from exc

    tables = [table_to_grid(table) for table in getattr(result, "tables", None) or []]
    text = _page_text(result)
    logger.info(
        "ocr_complete | tables=%s | shapes=%s | text_chars=%s",
        len(tables),
        [f"{len(grid)}x{max((len(row) for row in grid), default=0)}" for grid in tables],
        len(text),
    )
    return OcrResult(tables=tables, text=text)
