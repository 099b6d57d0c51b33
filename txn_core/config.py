from __future__ import annotations

import os
from pathlib import Path
from typing import Final, List


DATA_DIR: Final = Path(__file__).resolve().parents[1]
DEFAULT_DATA_FILE: Final = "transactions.csv"

TIMESTAMP_FORMAT: Final = os.getenv("TXN_TIMESTAMP_FORMAT", "ISO8601")
HISTOGRAM_BINS: Final = int(os.getenv("TXN_HISTOGRAM_BINS", "30"))
TABLE_PAGE_SIZE: Final = int(os.getenv("TXN_TABLE_PAGE_SIZE", "20"))
LOG_LEVEL: Final = os.getenv("TXN_LOG_LEVEL", "INFO").upper()

if HISTOGRAM_BINS < 1:
    raise ValueError(f"Invalid TXN_HISTOGRAM_BINS: {HISTOGRAM_BINS}")


def get_data_path() -> Path:
    """Resolved at call time so deployments and tests can point at another file."""
    raw = os.getenv("TXN_DATA_PATH")
    return Path(raw) if raw else DATA_DIR / DEFAULT_DATA_FILE


def get_cors_origins() -> List[str]:
    raw = os.getenv("TXN_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    return [o.strip() for o in raw.split(",") if o.strip()]
