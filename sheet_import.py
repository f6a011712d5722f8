"""
sheet_import.py - Batch import paths.

    import_workbook()     bulk spreadsheet export: one sheet per category,
                          one row per day, one column per location.
    import_legacy_json()  daily_records.json / detection_logs.json files
                          written by the previous chat bot.

Both feed the same record store as the screenshot pipeline and respect its
(date, category) uniqueness: existing days are skipped unless `overwrite`
is set.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from aggregate import aggregate_sheet_rows
from categories import detect_category
from grid import Grid, cell_text, grid_shape
from locations import DEFAULT_REGISTRY, LocationRegistry
from logging_config import get_logger
from models import Category, DailyRecord, DetectionLog, OutcomeStatus, Rejection, WriteResult
from normalize import parse_date, to_date
from pipeline import persist
from record_store import RecordStore, RecordStoreError
from scanner import locate
from validate import build

logger = get_logger(__name__)

ANALYZE_PREVIEW_ROWS = 10


@dataclass
class CategoryCounts:
    imported: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class ImportSummary:
    """Per-category import counts plus what a dry run would have written."""

    counts: dict[str, CategoryCounts] = field(
        default_factory=lambda: {category.value: CategoryCounts() for category in Category}
    )
    skipped_sheets: list[str] = field(default_factory=list)
    records: list[DailyRecord] = field(default_factory=list)
    detection_logs_imported: int = 0

    @property
    def total_imported(self) -> int:
        return sum(count.imported for count in self.counts.values())

    @property
    def total_skipped(self) -> int:
        return sum(count.skipped for count in self.counts.values())

    def lines(self) -> list[str]:
        """Human-readable summary, one line per category with activity."""
        out = []
        for category, count in self.counts.items():
            if count.imported or count.skipped or count.errors:
                line = f"{category}: {count.imported} imported, {count.skipped} skipped"
                if count.errors:
                    line += f", {count.errors} errors"
                out.append(line)
        for name in self.skipped_sheets:
            out.append(f"sheet {name!r} skipped: cannot determine category or header row")
        if self.detection_logs_imported:
            out.append(f"detection logs: {self.detection_logs_imported} imported")
        out.append(f"Total: {self.total_imported} imported")
        return out


def _frame_to_grid(frame: pd.DataFrame) -> Grid:
    cleaned = frame.astype(object).where(pd.notna(frame), "")
    return cleaned.values.tolist()


def read_workbook(path: str) -> dict[str, Grid]:
    """Every sheet of a workbook as a raw grid (no header inference)."""
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")
    frames = pd.read_excel(source, sheet_name=None, header=None, engine="openpyxl")
    sheets = {str(name): _frame_to_grid(frame) for name, frame in frames.items()}
    logger.info("workbook_loaded | file=%s | sheets=%s", source.name, list(sheets))
    return sheets


def analyze_workbook(sheets: dict[str, Grid], preview_rows: int = ANALYZE_PREVIEW_ROWS) -> list[str]:
    """Describe each sheet: detected category, shape and the first rows."""
    lines = [f"Sheet names: {list(sheets)}"]
    for name, grid in sheets.items():
        rows, cols = grid_shape(grid)
        category = detect_category(name)
        lines.append("")
        lines.append(f"--- Sheet: {name} ---")
        lines.append(f"Category: {category.value if category else 'unknown'}")
        lines.append(f"Size: {rows} rows x {cols} columns")
        lines.append(f"First {min(rows, preview_rows)} rows:")
        for index, row in enumerate(grid[:preview_rows]):
            lines.append(f"  Row {index}: {[cell_text(value) for value in row]}")
    return lines


def import_sheet(
    name: str,
    grid: Grid,
    category: Category,
    store: Optional[RecordStore],
    summary: ImportSummary,
    *,
    registry: LocationRegistry = DEFAULT_REGISTRY,
    dry_run: bool = False,
    overwrite: bool = False,
) -> bool:
    """Import one sheet into `summary`. False when no header row was found."""
    layout = locate(grid, registry)
    if layout is None:
        logger.warning("sheet_skipped | sheet=%s | reason=no_header_row", name)
        return False

    counts = summary.counts[category.value]
    for row in aggregate_sheet_rows(grid, layout, registry):
        built = build(row.date, category, row.aggregation, registry=registry, apply_signal_gate=False)
        if isinstance(built, Rejection):
            counts.skipped += 1
            continue

        if dry_run or store is None:
            summary.records.append(built)
            counts.imported += 1
            continue

        try:
            result = persist(built, store, overwrite=overwrite)
        except RecordStoreError as exc:
            logger.error(
                "sheet_row_failure | sheet=%s | row=%s | date=%s | error=%s",
                name,
                row.row_index,
                row.date,
                exc,
                exc_info=True,
            )
            counts.errors += 1
            continue

        if result == WriteResult.DUPLICATE_SKIPPED:
            counts.skipped += 1
        else:
            counts.imported += 1

    logger.info(
        "sheet_imported | sheet=%s | category=%s | imported=%s | skipped=%s | errors=%s | dry_run=%s",
        name,
        category.value,
        counts.imported,
        counts.skipped,
        counts.errors,
        dry_run,
    )
    return True


def import_sheets(
    sheets: dict[str, Grid],
    store: Optional[RecordStore],
    *,
    registry: LocationRegistry = DEFAULT_REGISTRY,
    dry_run: bool = False,
    overwrite: bool = False,
) -> ImportSummary:
    summary = ImportSummary()
    for name, grid in sheets.items():
        category = detect_category(name)
        if category is None:
            logger.info("sheet_skipped | sheet=%s | reason=unknown_category", name)
            summary.skipped_sheets.append(name)
            continue
        found = import_sheet(
            name,
            grid,
            category,
            store,
            summary,
            registry=registry,
            dry_run=dry_run,
            overwrite=overwrite,
        )
        if not found:
            summary.skipped_sheets.append(name)
    return summary


def import_workbook(
    path: str,
    store: Optional[RecordStore],
    *,
    registry: LocationRegistry = DEFAULT_REGISTRY,
    dry_run: bool = False,
    overwrite: bool = False,
) -> ImportSummary:
    """Import every recognizable sheet of a workbook."""
    return import_sheets(
        read_workbook(path),
        store,
        registry=registry,
        dry_run=dry_run,
        overwrite=overwrite,
    )


# -- Legacy JSON files --


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def legacy_record(
    entry: dict[str, Any],
    category: Category,
    registry: LocationRegistry = DEFAULT_REGISTRY,
) -> Optional[DailyRecord]:
    """Convert one legacy `{date, cdcTotals, totalSum, ...}` entry."""
    display_date = parse_date(entry.get("date"))
    if display_date is None:
        return None

    totals = registry.empty_totals()
    for name, value in (entry.get("cdcTotals") or {}).items():
        location = registry.by_name(name) or registry.resolve(name)
        if location is not None:
            totals[location.key] += int(round(float(value or 0)))

    fields: dict[str, Any] = {
        "date": to_date(display_date),
        "category": category,
        "location_totals": totals,
        "total_sum": int(entry.get("totalSum") or 0),
        "fc33_hadyai_sum": int(entry.get("fc33HadyaiSum") or 0),
    }
    if category == Category.ORANGE:
        fields["khon_kaen_laos"] = _optional_int(entry.get("khonKaenLaos"))
        fields["khon_kaen_cambodia"] = _optional_int(entry.get("khonKaenCambodia"))
    if entry.get("timestamp"):
        fields["timestamp"] = entry["timestamp"]
    return DailyRecord(**fields)


def legacy_detection_log(entry: dict[str, Any]) -> Optional[DetectionLog]:
    try:
        status = OutcomeStatus(str(entry.get("status") or "").strip().lower())
    except ValueError:
        return None
    display_date = parse_date(entry.get("date"))
    payload: dict[str, Any] = {
        "message_id": entry.get("messageId"),
        "group_id": entry.get("groupId"),
        "user_id": entry.get("userId"),
        "status": status,
        "date": to_date(display_date) if display_date else None,
        "categories": [str(value) for value in entry.get("categories") or []],
        "records_created": int(entry.get("recordsCreated") or 0),
        "reason": entry.get("reason"),
    }
    if entry.get("timestamp"):
        payload["timestamp"] = entry["timestamp"]
    return DetectionLog.model_validate(payload)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc


def import_legacy_json(
    records_path: str,
    store: RecordStore,
    *,
    logs_path: Optional[str] = None,
    registry: LocationRegistry = DEFAULT_REGISTRY,
    overwrite: bool = False,
) -> ImportSummary:
    """Import the previous bot's JSON files.

    The records file maps category -> list of entries. Older files stored
    yuzu under the "pop" key; it is read as yuzu when no "yuzu" key exists.
    """
    summary = ImportSummary()

    source = Path(records_path)
    if not source.exists():
        raise FileNotFoundError(f"Legacy records file not found: {records_path}")
    payload = _read_json(source)
    if not isinstance(payload, dict):
        raise ValueError(f"{records_path} must hold an object keyed by category.")

    sections: dict[Category, list[dict[str, Any]]] = {}
    for category in Category:
        entries = payload.get(category.value)
        if entries:
            sections[category] = entries
    if Category.YUZU not in sections and payload.get("pop"):
        sections[Category.YUZU] = payload["pop"]
        sections.pop(Category.POP, None)

    for category, entries in sections.items():
        counts = summary.counts[category.value]
        for entry in entries:
            try:
                record = legacy_record(entry, category, registry)
            except (TypeError, ValueError) as exc:
                logger.warning("legacy_record_invalid | category=%s | entry=%r | error=%s", category.value, entry, exc)
                record = None
            if record is None:
                counts.skipped += 1
                continue
            try:
                result = persist(record, store, overwrite=overwrite)
            except RecordStoreError as exc:
                logger.error("legacy_record_failure | date=%s | error=%s", record.display_date, exc, exc_info=True)
                counts.errors += 1
                continue
            if result == WriteResult.DUPLICATE_SKIPPED:
                counts.skipped += 1
            else:
                counts.imported += 1
        logger.info(
            "legacy_records_imported | category=%s | imported=%s | skipped=%s",
            category.value,
            counts.imported,
            counts.skipped,
        )

    if logs_path:
        logs_source = Path(logs_path)
        if logs_source.exists():
            for entry in _read_json(logs_source) or []:
                log = legacy_detection_log(entry)
                if log is None:
                    logger.warning("legacy_log_invalid | entry=%r", entry)
                    continue
                store.save_detection_log(log)
                summary.detection_logs_imported += 1
            logger.info("legacy_logs_imported | count=%s", summary.detection_logs_imported)
        else:
            logger.info("legacy_logs_missing | path=%s | action=skip", logs_path)

    return summary
