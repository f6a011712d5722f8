"""
models.py - Data models for the table extraction pipeline.

Every stage communicates through these models:

    locations.py  ->  CanonicalLocation
    scanner.py    ->  Layout
    aggregate.py  ->  AggregationResult
    validate.py   ->  DailyRecord | Rejection
    pipeline.py   ->  ExtractionOutcome, DetectionLog
    ocr.py        ->  OcrResult

Design principles:
1. Derived structures (Layout, AggregationResult, DailyRecord) are frozen;
   a later stage never edits what an earlier stage produced.
2. Failure is a value (Rejection, ExtractionOutcome with status=failed),
   not an exception, for everything except collaborator transport errors.
3. Location quantities are keyed by the canonical storage key
   (e.g. `cdc_hadyai`), never by the surface text found in a table.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    """Product categories tracked in the daily report."""

    ORANGE = "orange"
    YUZU = "yuzu"
    POP = "pop"
    MIXED = "mixed"
    TOMATO = "tomato"


class LabelColumn(str, Enum):
    """Which label column carries a location's name on a report row."""

    # DC rows: the distribution-center name sits in its own column.
    PRIMARY = "primary"
    # Depot rows: the warehouse group is a merged cell in the first column.
    SECONDARY = "secondary"


class TotalSource(str, Enum):
    TOTAL_ROW = "total_row"
    TOTAL_COLUMN = "total_column"
    LOCATION_SUM = "location_sum"


class RejectionReason(str, Enum):
    """Why an extraction attempt did not produce a record.

    Values are the human-readable reasons written to the detection log.
    """

    NO_TABLE = "no table data"
    LOCATE_FAILED = "header row not found"
    NO_DATE = "no date found"
    SIGNAL_ZERO = "signal locations all zero"
    NO_DATA = "no data"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"


class PipelineStage(str, Enum):
    """States of one extraction attempt.

    received -> preprocessed -> located -> aggregated -> validated -> persisted

    Terminal states: locate_failed, rejected, persisted, duplicate_skipped,
    plus error for collaborator failures at any point.
    """

    RECEIVED = "received"
    PREPROCESSED = "preprocessed"
    LOCATED = "located"
    LOCATE_FAILED = "locate_failed"
    AGGREGATED = "aggregated"
    VALIDATED = "validated"
    REJECTED = "rejected"
    PERSISTED = "persisted"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    ERROR = "error"


class WriteResult(str, Enum):
    INSERTED = "inserted"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    REPLACED = "replaced"


class CanonicalLocation(BaseModel):
    """One physical warehouse or distribution center.

    A location owns an ordered tuple of surface forms it may appear as in a
    report: the full Thai name, shorter spellings and a three-letter code.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(
        ...,
        description=(
            "Storage key, also the column name in the daily_records table. "
            "Examples: 'cdc_hadyai', 'cdc_bangbuathong'."
        ),
    )
    name: str = Field(
        ...,
        description="Canonical display name as used on the printed report, e.g. 'หาดใหญ่'.",
    )
    variants: tuple[str, ...] = Field(
        ...,
        min_length=1,
        description=(
            "Surface forms matched by substring containment. The canonical "
            "name is always one of them."
        ),
    )
    label_column: LabelColumn = Field(
        default=LabelColumn.PRIMARY,
        description=(
            "Label column searched for this location on a report row. Depot "
            "locations (name prefixed with 'คลัง') use the secondary column."
        ),
    )


class Layout(BaseModel):
    """Resolved header row of one grid."""

    model_config = ConfigDict(frozen=True)

    header_row: int = Field(..., ge=0, description="Index of the accepted header row.")
    location_columns: dict[int, str] = Field(
        default_factory=dict,
        description="Column index -> canonical location key for header cells naming a location.",
    )
    date_column: Optional[int] = Field(
        default=None,
        description="Column whose header cell is a date label, if one was seen in the header row.",
    )
    total_column: Optional[int] = Field(
        default=None,
        description="Column whose header cell is a grand-total label, if one was seen in the header row.",
    )

    @property
    def locations_found(self) -> set[str]:
        """Distinct canonical keys named in the header row."""
        return set(self.location_columns.values())


class AggregationResult(BaseModel):
    """Per-location sums for one category of one grid."""

    model_config = ConfigDict(frozen=True)

    location_totals: dict[str, int] = Field(
        default_factory=dict,
        description="Canonical key -> summed strictly-positive quantity. Every known location present.",
    )
    grand_total: int = Field(
        default=0,
        description="Total row quantity when usable, else the sum of location_totals.",
    )
    total_source: TotalSource = Field(default=TotalSource.LOCATION_SUM)
    aux_fields: dict[str, Optional[int]] = Field(
        default_factory=dict,
        description="Category-specific auxiliary quantities (orange: Khon Kaen cross-border).",
    )
    matched_rows: int = Field(default=0, ge=0, description="Rows attributed to at least one location.")


class DailyRecord(BaseModel):
    """The persisted unit: one category on one day.

    Natural key is (date, category). A record is never edited after it is
    built; a deliberate re-run replaces it as a whole.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date = Field(..., description="Report day.")
    category: Category
    location_totals: dict[str, int] = Field(
        ...,
        description="Canonical key -> quantity for every known location (0 when absent).",
    )
    total_sum: int = Field(default=0, description="Grand total for the category on that day.")
    fc33_hadyai_sum: int = Field(
        default=0,
        description="Hat Yai (FC33) quantity, kept as its own column for the daily summary.",
    )
    khon_kaen_laos: Optional[int] = Field(
        default=None,
        description="Khon Kaen quantity shipped to Laos. Orange only.",
    )
    khon_kaen_cambodia: Optional[int] = Field(
        default=None,
        description="Khon Kaen quantity shipped to Cambodia. Orange only.",
    )
    timestamp: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc),
        description="Capture time of the source report.",
    )

    @property
    def key(self) -> tuple[dt.date, Category]:
        return self.date, self.category

    @property
    def display_date(self) -> str:
        return self.date.strftime("%d/%m/%Y")

    def to_row(self) -> dict[str, Any]:
        """Flatten into the daily_records column layout."""
        row: dict[str, Any] = {
            "date": self.date.isoformat(),
            "category": self.category.value,
            "timestamp": self.timestamp.isoformat(),
            "fc33_hadyai_sum": self.fc33_hadyai_sum,
            "total_sum": self.total_sum,
        }
        row.update(self.location_totals)
        row["khon_kaen_laos"] = self.khon_kaen_laos
        row["khon_kaen_cambodia"] = self.khon_kaen_cambodia
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any], location_keys: list[str]) -> "DailyRecord":
        """Rebuild a record from a flat daily_records row."""
        return cls(
            date=row["date"],
            category=row["category"],
            timestamp=row.get("timestamp") or dt.datetime.now(dt.timezone.utc),
            fc33_hadyai_sum=int(row.get("fc33_hadyai_sum") or 0),
            total_sum=int(row.get("total_sum") or 0),
            location_totals={key: int(row.get(key) or 0) for key in location_keys},
            khon_kaen_laos=row.get("khon_kaen_laos"),
            khon_kaen_cambodia=row.get("khon_kaen_cambodia"),
        )


class Rejection(BaseModel):
    """A plausibility gate failed; nothing is persisted."""

    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    category: Optional[Category] = None
    date: Optional[str] = Field(default=None, description="DD/MM/YYYY when a date was resolved.")


class ExtractionOutcome(BaseModel):
    """Terminal result of one (table, category) extraction attempt."""

    status: OutcomeStatus
    stage: PipelineStage
    category: Optional[Category] = None
    date: Optional[str] = Field(default=None, description="DD/MM/YYYY when a date was resolved.")
    reason: Optional[str] = Field(default=None, description="Rejection reason or collaborator error message.")
    write_result: Optional[WriteResult] = None
    table_index: Optional[int] = None
    record: Optional[DailyRecord] = None

    @property
    def created(self) -> bool:
        return self.write_result in (WriteResult.INSERTED, WriteResult.REPLACED)

    def to_descriptor(self) -> dict[str, Any]:
        """Compact `{status, date, category, reason}` view for audit consumers."""
        return {
            "status": self.status.value,
            "date": self.date,
            "category": self.category.value if self.category else None,
            "reason": self.reason,
        }


class DetectionLog(BaseModel):
    """Append-only audit row for one source message."""

    timestamp: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    message_id: Optional[str] = None
    group_id: Optional[str] = None
    user_id: Optional[str] = None
    status: OutcomeStatus
    date: Optional[dt.date] = None
    categories: list[str] = Field(default_factory=list)
    records_created: int = Field(default=0, ge=0)
    reason: Optional[str] = None


class OcrResult(BaseModel):
    """What the OCR collaborator returns for one image."""

    tables: list[list[list[Any]]] = Field(
        default_factory=list,
        description="Recognized tables, each a dense grid of cell text ('' for empty cells).",
    )
    text: str = Field(default="", description="Plain text of all recognized lines, newline separated.")
