"""
config.py - Runtime configuration for the extraction service.

Environment values are read once at import time (after loading `.env`).
Tuning constants for the table scanner live here too so that the scanner,
aggregator and tests agree on the same numbers.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

try:
    load_dotenv()
except UnicodeDecodeError:
    # Fallback for legacy Windows-encoded .env files.
    load_dotenv(encoding="cp1252")


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = _env(name, default)
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


# -- Storage --

# PostgreSQL connection string. When empty the JSON file store is used.
DATABASE_URL = _env("DATABASE_URL")

# JSON file used by the local store (development, tests, single host).
RECORDS_FILE = _env("RECORDS_FILE", "data/daily_records.json")

# -- Extraction --

# Categories attempted for every incoming screenshot.
EXTRACT_CATEGORIES = _env_list("EXTRACT_CATEGORIES", "orange,yuzu")

# Only the first N rows are scanned for the header row.
HEADER_SCAN_ROWS = 50

# A header row must name at least this many distinct locations.
MIN_HEADER_LOCATIONS = 5

# Label columns on the daily report: DC names sit in column 1, the depot
# (warehouse) group in column 0 as a merged cell.
PRIMARY_LABEL_COLUMN = 1
SECONDARY_LABEL_COLUMN = 0
FILL_DOWN_COLUMNS = frozenset({SECONDARY_LABEL_COLUMN, PRIMARY_LABEL_COLUMN})

# -- Collaborators --

AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT = _env("AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT")
AZURE_DOCUMENT_INTELLIGENCE_KEY = _env("AZURE_DOCUMENT_INTELLIGENCE_KEY")
OCR_MODEL = "prebuilt-layout"

OPENAI_API_KEY = _env("OPENAI_API_KEY")
CLASSIFIER_MODEL = _env("CLASSIFIER_MODEL", "gpt-4o")

# Maximum image size accepted by the API before OCR (bytes).
MAX_IMAGE_BYTES = 10 * 1024 * 1024

# -- HTTP --

PORT = int(_env("PORT", "8000") or "8000")
