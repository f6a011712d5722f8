"""
record_store.py - Deduplicating persistence for daily records.

Two interchangeable stores:

    JsonRecordStore      one local JSON file, atomic temp-file writes,
                         an in-process lock around read-modify-write.
    PostgresRecordStore  daily_records / detection_logs tables with a
                         UNIQUE (date, category) constraint.

Both expose upsert_if_absent(): inserting an existing (date, category) key
is a no-op reported as WriteResult.DUPLICATE_SKIPPED, never an error.
Storage failures raise RecordStoreError.
"""

from __future__ import annotations

import calendar
import datetime as dt
import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Union

import config
from locations import DEFAULT_REGISTRY, LocationRegistry
from logging_config import get_logger
from models import Category, DailyRecord, DetectionLog, OutcomeStatus, WriteResult
from normalize import to_date

logger = get_logger(__name__)

DateLike = Union[dt.date, str]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class RecordStoreError(Exception):
    """The persistence layer could not complete an operation."""


def _as_date(value: DateLike) -> dt.date:
    if isinstance(value, dt.date):
        return value
    parsed = to_date(str(value))
    if parsed is None:
        raise ValueError(f"Not a valid date: {value!r}")
    return parsed


def _month_bounds(month: int, year: int) -> tuple[dt.date, dt.date]:
    if not 1 <= int(month) <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    last_day = calendar.monthrange(int(year), int(month))[1]
    return dt.date(int(year), int(month), 1), dt.date(int(year), int(month), last_day)


def _group_by_category(records: list[DailyRecord]) -> dict[str, list[DailyRecord]]:
    grouped: dict[str, list[DailyRecord]] = {category.value: [] for category in Category}
    for record in records:
        grouped[record.category.value].append(record)
    return grouped


class JsonRecordStore:
    """Disk-backed record store using one JSON file and atomic writes.

    (date, category) uniqueness holds within one process only: the lock is a
    threading.Lock, so two processes writing the same file can both insert
    the same key. Use PostgresRecordStore, whose UNIQUE constraint enforces
    the key at the storage boundary, when more than one process writes.
    """

    def __init__(self, path: Optional[str] = None, registry: LocationRegistry = DEFAULT_REGISTRY) -> None:
        target = path or config.RECORDS_FILE
        self.path = Path(target).resolve()
        self.registry = registry
        self._lock = threading.Lock()

    def _load(self) -> dict[str, list[dict[str, Any]]]:
        if not self.path.exists():
            return {"daily_records": [], "detection_logs": []}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise RecordStoreError(f"Cannot read record file {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise RecordStoreError(f"Record file {self.path} does not hold a JSON object")
        return {
            "daily_records": list(raw.get("daily_records") or []),
            "detection_logs": list(raw.get("detection_logs") or []),
        }

    def _save(self, payload: dict[str, list[dict[str, Any]]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(self.path.parent),
                delete=False,
                suffix=".tmp",
                prefix="records-",
            ) as tmp_file:
                json.dump(payload, tmp_file, ensure_ascii=False, indent=2)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
                tmp_path = Path(tmp_file.name)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise RecordStoreError(f"Cannot write record file {self.path}: {exc}") from exc

    @staticmethod
    def _find(rows: list[dict[str, Any]], day: dt.date, category: Category) -> Optional[int]:
        iso = day.isoformat()
        for index, row in enumerate(rows):
            if row.get("date") == iso and row.get("category") == category.value:
                return index
        return None

    def _to_record(self, row: dict[str, Any]) -> DailyRecord:
        return DailyRecord.from_row(row, self.registry.keys())

    def upsert_if_absent(self, record: DailyRecord) -> WriteResult:
        """Insert unless (date, category) already exists."""
        with self._lock:
            payload = self._load()
            rows = payload["daily_records"]
            if self._find(rows, record.date, record.category) is not None:
                logger.info(
                    "record_duplicate_skipped | store=json | date=%s | category=%s",
                    record.display_date,
                    record.category.value,
                )
                return WriteResult.DUPLICATE_SKIPPED
            rows.append(record.to_row())
            self._save(payload)
        logger.info(
            "record_inserted | store=json | date=%s | category=%s | total_sum=%s",
            record.display_date,
            record.category.value,
            record.total_sum,
        )
        return WriteResult.INSERTED

    def replace_record(self, record: DailyRecord) -> WriteResult:
        """Insert or overwrite the record for (date, category)."""
        with self._lock:
            payload = self._load()
            rows = payload["daily_records"]
            index = self._find(rows, record.date, record.category)
            if index is None:
                rows.append(record.to_row())
                result = WriteResult.INSERTED
            else:
                rows[index] = record.to_row()
                result = WriteResult.REPLACED
            self._save(payload)
        logger.info(
            "record_written | store=json | date=%s | category=%s | result=%s",
            record.display_date,
            record.category.value,
            result.value,
        )
        return result

    def get_record(self, date: DateLike, category: Category | str) -> Optional[DailyRecord]:
        day = _as_date(date)
        with self._lock:
            rows = self._load()["daily_records"]
        index = self._find(rows, day, Category(category))
        return self._to_record(rows[index]) if index is not None else None

    def is_recorded(self, date: DateLike, category: Category | str) -> bool:
        return self.get_record(date, category) is not None

    def list_records(self, category: Optional[Category | str] = None) -> list[DailyRecord]:
        with self._lock:
            rows = self._load()["daily_records"]
        records = [self._to_record(row) for row in rows]
        if category is not None:
            wanted = Category(category)
            records = [record for record in records if record.category == wanted]
        records.sort(key=lambda record: (record.date, record.category.value))
        return records

    def list_records_by_month(self, month: int, year: int) -> dict[str, list[DailyRecord]]:
        start, end = _month_bounds(month, year)
        records = [record for record in self.list_records() if start <= record.date <= end]
        return _group_by_category(records)

    def save_detection_log(self, log: DetectionLog) -> None:
        with self._lock:
            payload = self._load()
            payload["detection_logs"].append(log.model_dump(mode="json"))
            self._save(payload)

    def list_detection_logs(self, limit: int = 100) -> list[DetectionLog]:
        with self._lock:
            rows = self._load()["detection_logs"]
        logs = [DetectionLog.model_validate(row) for row in rows]
        logs.sort(key=lambda log: log.timestamp, reverse=True)
        return logs[: max(0, int(limit))]


class PostgresRecordStore:
    """PostgreSQL-backed record store."""

    def __init__(
        self,
        database_url: str,
        registry: LocationRegistry = DEFAULT_REGISTRY,
        table_name: str = "daily_records",
        log_table_name: str = "detection_logs",
    ) -> None:
        self.database_url = str(database_url or "").strip()
        if not self.database_url:
            raise ValueError("database_url is required for PostgresRecordStore.")
        for name in (table_name, log_table_name, *registry.keys()):
            if not _IDENTIFIER.match(name):
                raise ValueError(f"{name!r} must be a valid SQL identifier.")
        self.registry = registry
        self.table_name = table_name
        self.log_table_name = log_table_name
        self._psycopg = self._import_psycopg()
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    @staticmethod
    def _import_psycopg():
        try:
            import psycopg  # type: ignore

            return psycopg
        except Exception as exc:
            raise RuntimeError(
                "PostgreSQL store requires psycopg. Install with: pip install psycopg[binary]"
            ) from exc

    @property
    def _columns(self) -> list[str]:
        return [
            "date",
            "category",
            "timestamp",
            "fc33_hadyai_sum",
            "total_sum",
            *self.registry.keys(),
            "khon_kaen_laos",
            "khon_kaen_cambodia",
        ]

    def _connect(self):
        try:
            return self._psycopg.connect(self.database_url, autocommit=True)
        except self._psycopg.Error as exc:
            raise RecordStoreError(f"Cannot connect to PostgreSQL: {exc}") from exc

    def _ensure_schema(self, conn) -> None:
        if self._schema_ready:
            return
        categories = ", ".join(f"'{category.value}'" for category in Category)
        statuses = ", ".join(f"'{status.value}'" for status in OutcomeStatus)
        location_columns = "".join(f"{key} INTEGER DEFAULT 0, " for key in self.registry.keys())
        statements = [
            (
                f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
                "id SERIAL PRIMARY KEY, "
                "date DATE NOT NULL, "
                f"category TEXT NOT NULL CHECK (category IN ({categories})), "
                "timestamp TIMESTAMPTZ NOT NULL, "
                "fc33_hadyai_sum INTEGER DEFAULT 0, "
                "total_sum INTEGER DEFAULT 0, "
                f"{location_columns}"
                "khon_kaen_laos INTEGER DEFAULT NULL, "
                "khon_kaen_cambodia INTEGER DEFAULT NULL, "
                "created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(), "
                f"CONSTRAINT {self.table_name}_date_category_key UNIQUE (date, category)"
                ")"
            ),
            f"CREATE INDEX IF NOT EXISTS idx_{self.table_name}_date ON {self.table_name} (date)",
            (
                f"CREATE TABLE IF NOT EXISTS {self.log_table_name} ("
                "id SERIAL PRIMARY KEY, "
                "timestamp TIMESTAMPTZ NOT NULL, "
                "message_id TEXT, "
                "group_id TEXT, "
                "user_id TEXT, "
                f"status TEXT NOT NULL CHECK (status IN ({statuses})), "
                "date DATE DEFAULT NULL, "
                "categories JSONB DEFAULT NULL, "
                "records_created INTEGER DEFAULT 0, "
                "reason TEXT DEFAULT NULL, "
                "created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()"
                ")"
            ),
            f"CREATE INDEX IF NOT EXISTS idx_{self.log_table_name}_timestamp ON {self.log_table_name} (timestamp)",
        ]
        with self._schema_lock:
            if self._schema_ready:
                return
            with conn.cursor() as cur:
                for statement in statements:
                    cur.execute(statement)
            self._schema_ready = True

    def _execute(self, query: str, params: tuple | list = (), fetch: str = "none") -> Any:
        from psycopg.rows import dict_row  # type: ignore

        try:
            with self._connect() as conn:
                self._ensure_schema(conn)
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query, params)
                    if fetch == "one":
                        return cur.fetchone()
                    if fetch == "all":
                        return cur.fetchall()
                    return None
        except self._psycopg.Error as exc:
            logger.error(
                "record_store_pg_error | error_type=%s | error=%s",
                type(exc).__name__,
                exc,
                exc_info=True,
            )
            raise RecordStoreError(f"PostgreSQL operation failed: {exc}") from exc

    def _values(self, record: DailyRecord) -> list[Any]:
        row = record.to_row()
        row["date"] = record.date
        row["timestamp"] = record.timestamp
        return [row[column] for column in self._columns]

    def _to_record(self, row: dict[str, Any]) -> DailyRecord:
        return DailyRecord.from_row(row, self.registry.keys())

    def upsert_if_absent(self, record: DailyRecord) -> WriteResult:
        columns = self._columns
        query = (
            f"INSERT INTO {self.table_name} ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))}) "
            "ON CONFLICT (date, category) DO NOTHING "
            "RETURNING id"
        )
        inserted = self._execute(query, self._values(record), fetch="one")
        result = WriteResult.INSERTED if inserted else WriteResult.DUPLICATE_SKIPPED
        logger.info(
            "record_upsert | store=postgres | date=%s | category=%s | result=%s",
            record.display_date,
            record.category.value,
            result.value,
        )
        return result

    def replace_record(self, record: DailyRecord) -> WriteResult:
        columns = self._columns
        updates = ", ".join(
            f"{column} = EXCLUDED.{column}" for column in columns if column not in ("date", "category")
        )
        query = (
            f"INSERT INTO {self.table_name} ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))}) "
            f"ON CONFLICT (date, category) DO UPDATE SET {updates} "
            "RETURNING (xmax = 0) AS inserted"
        )
        row = self._execute(query, self._values(record), fetch="one")
        result = WriteResult.INSERTED if row and row.get("inserted") else WriteResult.REPLACED
        logger.info(
            "record_written | store=postgres | date=%s | category=%s | result=%s",
            record.display_date,
            record.category.value,
            result.value,
        )
        return result

    def get_record(self, date: DateLike, category: Category | str) -> Optional[DailyRecord]:
        row = self._execute(
            f"SELECT * FROM {self.table_name} WHERE date = %s AND category = %s",
            (_as_date(date), Category(category).value),
            fetch="one",
        )
        return self._to_record(row) if row else None

    def is_recorded(self, date: DateLike, category: Category | str) -> bool:
        row = self._execute(
            f"SELECT 1 AS found FROM {self.table_name} WHERE date = %s AND category = %s",
            (_as_date(date), Category(category).value),
            fetch="one",
        )
        return row is not None

    def list_records(self, category: Optional[Category | str] = None) -> list[DailyRecord]:
        if category is None:
            rows = self._execute(
                f"SELECT * FROM {self.table_name} ORDER BY date ASC, category ASC",
                fetch="all",
            )
        else:
            rows = self._execute(
                f"SELECT * FROM {self.table_name} WHERE category = %s ORDER BY date ASC",
                (Category(category).value,),
                fetch="all",
            )
        return [self._to_record(row) for row in rows or []]

    def list_records_by_month(self, month: int, year: int) -> dict[str, list[DailyRecord]]:
        start, end = _month_bounds(month, year)
        rows = self._execute(
            f"SELECT * FROM {self.table_name} WHERE date >= %s AND date <= %s "
            "ORDER BY date ASC, category ASC",
            (start, end),
            fetch="all",
        )
        return _group_by_category([self._to_record(row) for row in rows or []])

    def save_detection_log(self, log: DetectionLog) -> None:
        from psycopg.types.json import Jsonb  # type: ignore

        self._execute(
            f"INSERT INTO {self.log_table_name} "
            "(timestamp, message_id, group_id, user_id, status, date, categories, records_created, reason) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                log.timestamp,
                log.message_id,
                log.group_id,
                log.user_id,
                log.status.value,
                log.date,
                Jsonb(log.categories) if log.categories else None,
                log.records_created,
                log.reason,
            ),
        )

    def list_detection_logs(self, limit: int = 100) -> list[DetectionLog]:
        rows = self._execute(
            f"SELECT timestamp, message_id, group_id, user_id, status, date, categories, "
            f"records_created, reason FROM {self.log_table_name} "
            "ORDER BY timestamp DESC LIMIT %s",
            (max(0, int(limit)),),
            fetch="all",
        )
        logs = []
        for row in rows or []:
            row = dict(row)
            row["categories"] = row.get("categories") or []
            logs.append(DetectionLog.model_validate(row))
        return logs


RecordStore = Union[JsonRecordStore, PostgresRecordStore]


def get_record_store(registry: LocationRegistry = DEFAULT_REGISTRY) -> RecordStore:
    """PostgreSQL when DATABASE_URL is configured, else the local JSON file."""
    if config.DATABASE_URL:
        logger.info("record_store_selected | store=postgres")
        return PostgresRecordStore(config.DATABASE_URL, registry=registry)
    logger.info("record_store_selected | store=json | path=%s", config.RECORDS_FILE)
    return JsonRecordStore(config.RECORDS_FILE, registry=registry)
