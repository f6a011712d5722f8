"""
test_record_store.py - JSON record store and store selection.

Usage: pytest test_record_store.py
"""

from __future__ import annotations

import datetime as dt
import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import config
import record_store
from locations import DEFAULT_REGISTRY
from models import Category, DailyRecord, DetectionLog, OutcomeStatus, WriteResult
from record_store import JsonRecordStore, PostgresRecordStore, RecordStoreError, get_record_store


def _record(day: dt.date, category: Category = Category.ORANGE, total: int = 10) -> DailyRecord:
    totals = DEFAULT_REGISTRY.empty_totals()
    totals["cdc_hadyai"] = total
    return DailyRecord(
        date=day,
        category=category,
        location_totals=totals,
        total_sum=total,
        fc33_hadyai_sum=total,
    )


def test_upsert_if_absent_skips_existing_key(json_store):
    first = _record(dt.date(2025, 10, 18), total=10)
    second = _record(dt.date(2025, 10, 18), total=99)

    assert json_store.upsert_if_absent(first) == WriteResult.INSERTED
    assert json_store.upsert_if_absent(second) == WriteResult.DUPLICATE_SKIPPED

    stored = json_store.get_record("18/10/2025", Category.ORANGE)
    assert stored.total_sum == 10
    assert len(json_store.list_records()) == 1


def test_same_date_different_category_is_a_new_record(json_store):
    json_store.upsert_if_absent(_record(dt.date(2025, 10, 18), Category.ORANGE))
    assert json_store.upsert_if_absent(_record(dt.date(2025, 10, 18), Category.YUZU)) == WriteResult.INSERTED
    assert json_store.is_recorded("2025-10-18", "yuzu")
    assert not json_store.is_recorded("2025-10-19", "yuzu")


def test_replace_record(json_store):
    assert json_store.replace_record(_record(dt.date(2025, 10, 18), total=1)) == WriteResult.INSERTED
    assert json_store.replace_record(_record(dt.date(2025, 10, 18), total=2)) == WriteResult.REPLACED
    assert json_store.get_record(dt.date(2025, 10, 18), Category.ORANGE).total_sum == 2
    assert len(json_store.list_records()) == 1


def test_list_records_by_month_groups_every_category(json_store):
    json_store.upsert_if_absent(_record(dt.date(2025, 10, 2), Category.ORANGE))
    json_store.upsert_if_absent(_record(dt.date(2025, 10, 1), Category.ORANGE))
    json_store.upsert_if_absent(_record(dt.date(2025, 10, 31), Category.YUZU))
    json_store.upsert_if_absent(_record(dt.date(2025, 11, 1), Category.YUZU))

    grouped = json_store.list_records_by_month(10, 2025)

    assert set(grouped) == {category.value for category in Category}
    assert [record.date.day for record in grouped["orange"]] == [1, 2]
    assert [record.date.day for record in grouped["yuzu"]] == [31]
    assert grouped["pop"] == []

    with pytest.raises(ValueError):
        json_store.list_records_by_month(13, 2025)


def test_records_survive_a_new_store_instance(tmp_path):
    path = str(tmp_path / "nested" / "records.json")
    JsonRecordStore(path).upsert_if_absent(_record(dt.date(2025, 10, 18)))

    reopened = JsonRecordStore(path)
    assert reopened.is_recorded("18/10/2025", "orange")

    with open(path, encoding="utf-8") as handle:
        payload = json.load(handle)
    assert payload["daily_records"][0]["date"] == "2025-10-18"
    assert payload["daily_records"][0]["cdc_hadyai"] == 10
    assert not list((tmp_path / "nested").glob("*.tmp"))


def test_detection_logs_most_recent_first(json_store):
    base = dt.datetime(2025, 10, 18, 8, 0, tzinfo=dt.timezone.utc)
    for minutes in (0, 10, 5):
        json_store.save_detection_log(
            DetectionLog(
                timestamp=base + dt.timedelta(minutes=minutes),
                message_id=f"m{minutes}",
                status=OutcomeStatus.FAILED,
                reason="no data",
            )
        )

    logs = json_store.list_detection_logs(limit=2)
    assert [log.message_id for log in logs] == ["m10", "m5"]
    assert logs[0].status == OutcomeStatus.FAILED


def test_unreadable_file_raises_store_error(tmp_path):
    path = tmp_path / "records.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonRecordStore(str(path))

    with pytest.raises(RecordStoreError):
        store.list_records()
    with pytest.raises(RecordStoreError):
        store.upsert_if_absent(_record(dt.date(2025, 10, 18)))


def test_invalid_date_lookup():
    with pytest.raises(ValueError):
        JsonRecordStore("unused.json").get_record("not a date", "orange")


def test_get_record_store_uses_json_without_database_url(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATABASE_URL", "")
    monkeypatch.setattr(config, "RECORDS_FILE", str(tmp_path / "records.json"))

    store = get_record_store()
    assert isinstance(store, JsonRecordStore)
    assert store.path == (tmp_path / "records.json").resolve()


def test_get_record_store_uses_postgres_with_database_url(monkeypatch):
    created = {}

    class FakePostgresStore:
        def __init__(self, database_url, registry):
            created["url"] = database_url

    monkeypatch.setattr(config, "DATABASE_URL", "postgresql://localhost/shinsen")
    monkeypatch.setattr(record_store, "PostgresRecordStore", FakePostgresStore)

    assert isinstance(get_record_store(), FakePostgresStore)
    assert created["url"] == "postgresql://localhost/shinsen"


def test_postgres_store_requires_url():
    with pytest.raises(ValueError):
        PostgresRecordStore("")
