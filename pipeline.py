"""
pipeline.py - Orchestration of one extraction attempt.

For every (table, category) pair:

    received -> preprocessed -> located -> aggregated -> validated -> persisted
                                  |                         |            |
                            locate_failed               rejected   duplicate_skipped

Each terminal state yields exactly one ExtractionOutcome. Nothing raised by
a collaborator (OCR, classifier, store) escapes: it becomes an `error`
outcome carrying the underlying message.
"""

from __future__ import annotations

import numbers
from typing import Any, Callable, Iterable, Optional, Sequence

import config
from aggregate import aggregate
from categories import get_profile, parse_categories
from grid import Grid, cell_at, cell_text, fill_down
from locations import DEFAULT_REGISTRY, LocationRegistry
from logging_config import get_logger
from models import (
    Category,
    DailyRecord,
    DetectionLog,
    ExtractionOutcome,
    Layout,
    OcrResult,
    OutcomeStatus,
    PipelineStage,
    Rejection,
    RejectionReason,
    WriteResult,
)
from normalize import find_date_in_text, parse_date, to_date
from ocr import CollaboratorError
from record_store import RecordStore, RecordStoreError
from scanner import is_total_label, locate
from validate import build

logger = get_logger(__name__)

Classifier = Callable[[bytes], bool]
Recognizer = Callable[[bytes], OcrResult]


def _cell_date(value: Any, allow_serial: bool = False) -> Optional[str]:
    # Outside the date column a bare number is a quantity, not a serial date.
    if not allow_serial and isinstance(value, numbers.Real) and not isinstance(value, bool):
        return None
    return parse_date(value) or find_date_in_text(cell_text(value))


def resolve_date(grid: Grid, layout: Layout, text: str = "") -> Optional[str]:
    """Report date as DD/MM/YYYY.

    Looked for in the free OCR text first, then down the header's date
    column, then in every cell top-down, left to right.
    """
    found = find_date_in_text(text)
    if found:
        return found

    if layout.date_column is not None:
        for row_index in range(len(grid)):
            found = _cell_date(cell_at(grid, row_index, layout.date_column), allow_serial=True)
            if found:
                return found

    for row in grid:
        for value in row or []:
            found = _cell_date(value)
            if found:
                return found
    return None


def _failed(
    stage: PipelineStage,
    reason: str,
    category: Optional[Category],
    table_index: Optional[int],
    date: Optional[str] = None,
) -> ExtractionOutcome:
    return ExtractionOutcome(
        status=OutcomeStatus.FAILED,
        stage=stage,
        category=category,
        date=date,
        reason=reason,
        table_index=table_index,
    )


def _error(
    exc: Exception,
    category: Optional[Category] = None,
    table_index: Optional[int] = None,
    date: Optional[str] = None,
) -> ExtractionOutcome:
    return ExtractionOutcome(
        status=OutcomeStatus.ERROR,
        stage=PipelineStage.ERROR,
        category=category,
        date=date,
        reason=str(exc) or type(exc).__name__,
        table_index=table_index,
    )


def persist(record: DailyRecord, store: RecordStore, overwrite: bool = False) -> WriteResult:
    if overwrite:
        return store.replace_record(record)
    return store.upsert_if_absent(record)


def extract_table(
    grid: Grid,
    category: Category,
    store: RecordStore,
    *,
    text: str = "",
    registry: LocationRegistry = DEFAULT_REGISTRY,
    overwrite: bool = False,
    table_index: Optional[int] = None,
) -> ExtractionOutcome:
    """Run one (table, category) attempt to its terminal state."""
    profile = get_profile(category)

    layout = locate(grid, registry)
    if layout is None:
        return _failed(PipelineStage.LOCATE_FAILED, RejectionReason.LOCATE_FAILED.value, category, table_index)

    # Merged label cells only span data rows; a total row closes the span.
    prepared = fill_down(
        grid,
        config.FILL_DOWN_COLUMNS,
        start_row=layout.header_row + 1,
        stop=is_total_label,
    )

    date = resolve_date(prepared, layout, text)
    aggregation = aggregate(prepared, layout, profile, registry)

    built = build(date, category, aggregation, profile=profile, registry=registry)
    if isinstance(built, Rejection):
        return _failed(PipelineStage.REJECTED, built.reason.value, category, table_index, built.date)

    try:
        result = persist(built, store, overwrite=overwrite)
    except RecordStoreError as exc:
        logger.error(
            "persist_failure | category=%s | date=%s | error=%s",
            category.value,
            built.display_date,
            exc,
            exc_info=True,
        )
        return _error(exc, category, table_index, built.display_date)

    stage = PipelineStage.DUPLICATE_SKIPPED if result == WriteResult.DUPLICATE_SKIPPED else PipelineStage.PERSISTED
    return ExtractionOutcome(
        status=OutcomeStatus.SUCCESS,
        stage=stage,
        category=category,
        date=built.display_date,
        write_result=result,
        table_index=table_index,
        record=built,
    )


def extract_from_tables(
    tables: Sequence[Grid],
    text: str,
    store: RecordStore,
    *,
    categories: Optional[Iterable[Category | str]] = None,
    registry: LocationRegistry = DEFAULT_REGISTRY,
    overwrite: bool = False,
) -> list[ExtractionOutcome]:
    """Extract every requested category from every table."""
    wanted = parse_categories(list(categories) if categories is not None else list(config.EXTRACT_CATEGORIES))
    usable = [table for table in tables or [] if table]

    if not usable:
        logger.info("extract_no_tables | categories=%s", [category.value for category in wanted])
        return [
            _failed(PipelineStage.RECEIVED, RejectionReason.NO_TABLE.value, category, None)
            for category in wanted
        ]

    outcomes: list[ExtractionOutcome] = []
    for table_index, grid in enumerate(usable):
        for category in wanted:
            try:
                outcome = extract_table(
                    grid,
                    category,
                    store,
                    text=text,
                    registry=registry,
                    overwrite=overwrite,
                    table_index=table_index,
                )
            except Exception as exc:
                logger.error(
                    "extract_table_failure | table=%s | category=%s | error_type=%s | error=%s",
                    table_index,
                    category.value,
                    type(exc).__name__,
                    exc,
                    exc_info=True,
                )
                outcome = _error(exc, category, table_index)
            logger.info(
                "extract_outcome | table=%s | category=%s | status=%s | stage=%s | date=%s | reason=%r",
                table_index,
                category.value,
                outcome.status.value,
                outcome.stage.value,
                outcome.date,
                outcome.reason,
            )
            outcomes.append(outcome)
    return outcomes


def summarize_outcomes(
    outcomes: Sequence[ExtractionOutcome],
    *,
    message_id: Optional[str] = None,
    group_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> DetectionLog:
    """Fold one message's outcomes into its detection log row."""
    successes = [outcome for outcome in outcomes if outcome.status == OutcomeStatus.SUCCESS]
    if successes:
        status = OutcomeStatus.SUCCESS
    elif any(outcome.status == OutcomeStatus.ERROR for outcome in outcomes):
        status = OutcomeStatus.ERROR
    else:
        status = OutcomeStatus.FAILED

    date = next((outcome.date for outcome in successes if outcome.date), None)
    if date is None:
        date = next((outcome.date for outcome in outcomes if outcome.date), None)

    categories: list[str] = []
    for outcome in successes:
        if outcome.category and outcome.category.value not in categories:
            categories.append(outcome.category.value)

    reason = None
    if status != OutcomeStatus.SUCCESS:
        reasons: list[str] = []
        for outcome in outcomes:
            if outcome.reason and outcome.reason not in reasons:
                reasons.append(outcome.reason)
        reason = "; ".join(reasons) or None

    return DetectionLog(
        message_id=message_id,
        group_id=group_id,
        user_id=user_id,
        status=status,
        date=to_date(date) if date else None,
        categories=categories,
        records_created=sum(1 for outcome in outcomes if outcome.created),
        reason=reason,
    )


def reply_text(outcomes: Sequence[ExtractionOutcome]) -> Optional[str]:
    """Chat reply for a processed image, or None to stay silent.

    Only newly written records are announced; duplicates, rejections and
    errors produce no reply.
    """
    created = [outcome for outcome in outcomes if outcome.created and outcome.category]
    if not created:
        return None
    names: list[str] = []
    for outcome in created:
        name = get_profile(outcome.category).display_name
        if name not in names:
            names.append(name)
    return f"บันทึกข้อมูลวันที่ {created[0].date} เรียบร้อย: {', '.join(names)}"


def process_image(
    image_bytes: bytes,
    store: RecordStore,
    *,
    classifier: Optional[Classifier] = None,
    recognizer: Optional[Recognizer] = None,
    categories: Optional[Iterable[Category | str]] = None,
    registry: LocationRegistry = DEFAULT_REGISTRY,
    message_id: Optional[str] = None,
    group_id: Optional[str] = None,
    user_id: Optional[str] = None,
    overwrite: bool = False,
) -> list[ExtractionOutcome]:
    """Classify, recognize and extract one incoming image.

    Returns an empty list when the image is not a table screenshot; in that
    case nothing is logged to the store. Otherwise one detection log row is
    written for the message.
    """
    if classifier is None:
        from classify import is_table_screenshot as classifier
    if recognizer is None:
        from ocr import analyze_layout as recognizer

    logger.info(
        "process_image_start | message_id=%s | group_id=%s | size_kb=%.1f",
        message_id,
        group_id,
        len(image_bytes or b"") / 1024,
    )

    try:
        if not classifier(image_bytes):
            logger.info("process_image_skipped | message_id=%s | reason=not_a_table", message_id)
            return []
        ocr_result = recognizer(image_bytes)
        outcomes = extract_from_tables(
            ocr_result.tables,
            ocr_result.text,
            store,
            categories=categories,
            registry=registry,
            overwrite=overwrite,
        )
    except CollaboratorError as exc:
        logger.error(
            "process_image_collaborator_error | message_id=%s | error_type=%s | error=%s",
            message_id,
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        outcomes = [_error(exc)]

    detection_log = summarize_outcomes(
        outcomes,
        message_id=message_id,
        group_id=group_id,
        user_id=user_id,
    )
    try:
        store.save_detection_log(detection_log)
    except RecordStoreError as exc:
        logger.error("detection_log_failure | message_id=%s | error=%s", message_id, exc, exc_info=True)

    logger.info(
        "process_image_complete | message_id=%s | status=%s | records_created=%s | categories=%s",
        message_id,
        detection_log.status.value,
        detection_log.records_created,
        detection_log.categories,
    )
    return outcomes
