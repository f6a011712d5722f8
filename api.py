"""
api.py - FastAPI HTTP layer for the daily report extractor.

Endpoints:
  GET  /health
  POST /extract                      image upload -> classify, OCR, extract
  POST /extract/tables               already-recognized grids (skips OCR)
  GET  /records?month=&year=         records of one month, by category
  GET  /records/{category}/{date}    one record (date as YYYY-MM-DD)
  GET  /detection-logs?limit=        most recent detection logs

No extraction logic lives here; every endpoint delegates to pipeline.py or
the record store.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import config
from categories import parse_categories
from logging_config import get_logger, setup_logging
from models import Category, ExtractionOutcome, OcrResult
from normalize import parse_date, to_date
from pipeline import extract_from_tables, process_image, reply_text
from record_store import RecordStore, RecordStoreError, get_record_store

logger = get_logger("api")

app = FastAPI(
    title="Daily Report Extraction API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    """Process-wide record store, created on first use."""
    global _store
    if _store is None:
        _store = get_record_store()
    return _store


def get_classifier() -> Callable[[bytes], bool]:
    from classify import is_table_screenshot

    return is_table_screenshot


def get_recognizer() -> Callable[[bytes], OcrResult]:
    from ocr import analyze_layout

    return analyze_layout


class TablesRequest(BaseModel):
    """Grids recognized elsewhere, submitted for extraction."""

    tables: list[list[list[Any]]] = Field(..., description="One or more grids, row-major.")
    text: str = Field(default="", description="Free text recognized alongside the tables.")
    categories: Optional[list[str]] = Field(
        default=None,
        description="Categories to extract. Defaults to EXTRACT_CATEGORIES.",
    )
    overwrite: bool = Field(default=False, description="Replace records that already exist.")


def _outcomes_payload(outcomes: list[ExtractionOutcome]) -> dict[str, Any]:
    return {
        "outcomes": [outcome.model_dump(mode="json") for outcome in outcomes],
        "records_created": sum(1 for outcome in outcomes if outcome.created),
        "reply": reply_text(outcomes),
    }


def _categories_or_400(values: Optional[list[str]]) -> Optional[list[Category]]:
    if values is None:
        return None
    try:
        return parse_categories(values)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown category: {exc}") from exc


def _server_error(event: str, exc: Exception, detail: str) -> HTTPException:
    logger.error(
        "%s | error_type=%s | error=%s",
        event,
        type(exc).__name__,
        exc,
        exc_info=True,
    )
    return HTTPException(status_code=500, detail=detail)


@app.get("/health")
def health() -> dict[str, str]:
    """Service health check."""
    return {"status": "ok"}


@app.post("/extract")
async def extract_image(
    image: UploadFile = File(...),
    message_id: Optional[str] = Form(default=None),
    group_id: Optional[str] = Form(default=None),
    user_id: Optional[str] = Form(default=None),
    overwrite: bool = Form(default=False),
    store: RecordStore = Depends(get_store),
    classifier: Callable[[bytes], bool] = Depends(get_classifier),
    recognizer: Callable[[bytes], OcrResult] = Depends(get_recognizer),
) -> dict[str, Any]:
    """Run the full screenshot pipeline on one uploaded image."""
    try:
        image_bytes = await image.read()
    finally:
        await image.close()

    if not image_bytes:
        raise HTTPException(status_code=400, detail="Image file is empty.")
    if len(image_bytes) > config.MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=400,
            detail=f"Image exceeds {config.MAX_IMAGE_BYTES // (1024 * 1024)} MB limit.",
        )

    try:
        outcomes = process_image(
            image_bytes,
            store,
            classifier=classifier,
            recognizer=recognizer,
            message_id=message_id,
            group_id=group_id,
            user_id=user_id,
            overwrite=overwrite,
        )
    except Exception as exc:
        raise _server_error("api_extract_error", exc, "Unexpected server error while extracting image.") from exc

    payload = _outcomes_payload(outcomes)
    payload["is_table"] = bool(outcomes)
    return payload


@app.post("/extract/tables")
def extract_tables(
    request: TablesRequest,
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    """Extract records from grids that were recognized elsewhere."""
    categories = _categories_or_400(request.categories)
    try:
        outcomes = extract_from_tables(
            request.tables,
            request.text,
            store,
            categories=categories,
            overwrite=request.overwrite,
        )
    except Exception as exc:
        raise _server_error("api_extract_tables_error", exc, "Unexpected server error while extracting tables.") from exc
    return _outcomes_payload(outcomes)


@app.get("/records")
def list_records(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    """Records of one month, grouped by category."""
    try:
        grouped = store.list_records_by_month(month, year)
    except RecordStoreError as exc:
        raise _server_error("api_records_error", exc, "Failed to load records.") from exc
    return {
        "month": month,
        "year": year,
        "records": {
            category: [record.model_dump(mode="json") for record in records]
            for category, records in grouped.items()
        },
    }


@app.get("/records/{category}/{date}")
def get_record(
    category: str,
    date: str,
    store: RecordStore = Depends(get_store),
) -> dict[str, Any]:
    """One record by category and date (YYYY-MM-DD)."""
    try:
        wanted = Category(category.strip().lower())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}") from exc

    display_date = parse_date(date)
    if display_date is None:
        raise HTTPException(status_code=400, detail=f"Invalid date: {date}. Use YYYY-MM-DD.")

    try:
        record = store.get_record(to_date(display_date), wanted)
    except RecordStoreError as exc:
        raise _server_error("api_record_error", exc, "Failed to load record.") from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"No {wanted.value} record for {display_date}.")
    return record.model_dump(mode="json")


@app.get("/detection-logs")
def list_detection_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    store: RecordStore = Depends(get_store),
) -> list[dict[str, Any]]:
    """Most recent detection logs first."""
    try:
        logs = store.list_detection_logs(limit)
    except RecordStoreError as exc:
        raise _server_error("api_detection_logs_error", exc, "Failed to load detection logs.") from exc
    return [log.model_dump(mode="json") for log in logs]


if __name__ == "__main__":
    setup_logging()
    uvicorn.run("api:app", host="0.0.0.0", port=config.PORT, reload=False)
