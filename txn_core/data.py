from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from txn_core.config import TIMESTAMP_FORMAT, get_data_path


logger = logging.getLogger(__name__)

TIME_COL = "transaction_time"
DATE_COL = "date"
AMOUNT_COL = "amount"
COUNTRY_COL = "country"
CHANNEL_COL = "channel"
CATEGORY_COL = "merchant_category"
USER_TXN_COL = "total_transactions_user"
ACCOUNT_AGE_COL = "account_age_days"
FRAUD_COL = "is_fraud"

REQUIRED_COLUMNS = [
    TIME_COL,
    AMOUNT_COL,
    COUNTRY_COL,
    CHANNEL_COL,
    CATEGORY_COL,
    USER_TXN_COL,
    ACCOUNT_AGE_COL,
    FRAUD_COL,
]
CATEGORICAL_COLUMNS = [COUNTRY_COL, CHANNEL_COL, CATEGORY_COL]
NUMERIC_COLUMNS = [AMOUNT_COL, USER_TXN_COL, ACCOUNT_AGE_COL]
UNKNOWN_CATEGORY = "Unknown"

# Row numbers in error messages count the header as line 1.
_HEADER_OFFSET = 2
_MAX_REPORTED_ROWS = 5

ISO8601 = "ISO8601"
ISO_TIMESTAMP_PATTERN = r"\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?"


class DatasetLoadError(Exception):
    """The transaction file could not be turned into a usable dataset."""


class MissingColumnError(DatasetLoadError):
    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(f"Missing required column(s): {', '.join(self.missing)}")


class TimestampParseError(DatasetLoadError):
    def __init__(self, rows: List[int], values: List[str]):
        self.rows = rows
        self.values = values
        shown = ", ".join(f"line {r}: {v!r}" for r, v in zip(rows[:_MAX_REPORTED_ROWS], values))
        more = f" (+{len(rows) - _MAX_REPORTED_ROWS} more)" if len(rows) > _MAX_REPORTED_ROWS else ""
        super().__init__(f"Unparseable {TIME_COL} in {len(rows)} row(s): {shown}{more}")


@dataclass(frozen=True, eq=False)
class TransactionDataset:
    frame: pd.DataFrame
    countries: List[str] = field(default_factory=list)
    channels: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    min_date: Optional[date] = None
    max_date: Optional[date] = None
    source: str = ""

    def __len__(self) -> int:
        return len(self.frame)


def coerce_categorical(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    """Keep raw category strings; only empty cells become UNKNOWN_CATEGORY."""
    for col in cols:
        series = df[col]
        df[col] = series.astype(object).where(series.notna(), UNKNOWN_CATEGORY).astype(str)
    return df


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    return df


def parse_transaction_time(raw: pd.Series, fmt: str = TIMESTAMP_FORMAT) -> pd.Series:
    """Parse timestamps into UTC; any blank or malformed value fails the whole column.

    pandas' ISO8601 mode accepts truncated stamps ("2024-01", "2024-01-01T10"),
    so under that format every value must also carry a full date and time.
    """
    parsed = pd.to_datetime(raw, format=fmt, utc=True, errors="coerce")
    bad = parsed.isna()
    if fmt == ISO8601:
        complete = raw.astype("string").str.fullmatch(ISO_TIMESTAMP_PATTERN).fillna(False).astype(bool)
        bad |= ~complete
    if bad.any():
        positions = [int(i) for i in bad.to_numpy().nonzero()[0]]
        rows = [p + _HEADER_OFFSET for p in positions]
        values = [str(raw.iloc[p]) for p in positions[:_MAX_REPORTED_ROWS]]
        raise TimestampParseError(rows, values)
    return parsed


def sorted_options(series: pd.Series) -> List[str]:
    return sorted(str(v) for v in series.dropna().unique())


def _read_csv(source: Union[str, Path, IO[Any]]) -> pd.DataFrame:
    # Only empty cells are missing; literal "None", "NA" or "nan" stay as data.
    try:
        return pd.read_csv(source, keep_default_na=False, na_values=[""])
    except FileNotFoundError as exc:
        raise DatasetLoadError(f"Data file not found: {source}") from exc
    except pd.errors.EmptyDataError as exc:
        raise DatasetLoadError("Data file is empty") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise DatasetLoadError(f"Data file could not be parsed: {exc}") from exc


def load_transactions(source: Union[str, Path, IO[Any]], *, timestamp_format: str = TIMESTAMP_FORMAT) -> TransactionDataset:
    """Load the transaction CSV into a typed, read-only dataset.

    Raises DatasetLoadError (or a subclass) instead of returning a partial
    dataset: a single malformed timestamp fails the load.
    """
    raw = _read_csv(source)
    raw.columns = [str(c).strip() for c in raw.columns]

    missing = set(REQUIRED_COLUMNS) - set(raw.columns)
    if missing:
        raise MissingColumnError(missing)

    # date is always derived from transaction_time
    df = raw.drop(columns=[DATE_COL], errors="ignore").reset_index(drop=True)
    df[TIME_COL] = parse_transaction_time(df[TIME_COL], timestamp_format)
    df.insert(df.columns.get_loc(TIME_COL) + 1, DATE_COL, df[TIME_COL].dt.date)
    df = numericize(df, NUMERIC_COLUMNS)
    df = coerce_categorical(df, CATEGORICAL_COLUMNS)
    df[FRAUD_COL] = pd.to_numeric(df[FRAUD_COL], errors="coerce").eq(1)

    min_date = df[DATE_COL].min() if not df.empty else None
    max_date = df[DATE_COL].max() if not df.empty else None
    source_name = Path(source).name if isinstance(source, (str, Path)) else ""

    dataset = TransactionDataset(
        frame=df,
        countries=sorted_options(df[COUNTRY_COL]),
        channels=sorted_options(df[CHANNEL_COL]),
        categories=sorted_options(df[CATEGORY_COL]),
        min_date=min_date,
        max_date=max_date,
        source=source_name,
    )
    logger.info(
        "Loaded %d transactions from %s (%s to %s)",
        len(df),
        dataset.source or "<buffer>",
        min_date,
        max_date,
    )
    return dataset


def file_signature(path: Path) -> Tuple[str, float]:
    return str(path), path.stat().st_mtime


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(file_sig: Tuple[str, float]) -> TransactionDataset:
    return load_transactions(Path(file_sig[0]))


def load_dashboard_data(path: Optional[Union[str, Path]] = None) -> TransactionDataset:
    """Shared, cached dataset for the serving surfaces; reloads when the file changes."""
    data_path = Path(path) if path else get_data_path()
    if not data_path.exists():
        raise DatasetLoadError(f"Data file not found: {data_path}")
    try:
        return _load_dashboard_data_cached(file_signature(data_path))
    except DatasetLoadError:
        logger.error("Failed to load dataset from %s", data_path)
        raise


def dataset_options(dataset: TransactionDataset) -> Dict[str, Any]:
    return {
        "countries": list(dataset.countries),
        "channels": list(dataset.channels),
        "categories": list(dataset.categories),
        "min_date": dataset.min_date,
        "max_date": dataset.max_date,
        "rows": len(dataset),
        "source": dataset.source,
    }


def format_count(value: object) -> str:
    if value is None or pd.isna(value):
        return "0"
    return f"{int(value):,}"


def format_currency(value: object, decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"${float(value):,.{decimals}f}"


def format_percent(value: object, decimals: int = 1) -> str:
    if value is None or pd.isna(value):
        return "0%"
    return f"{float(value) * 100:.{decimals}f}%"


_KPI_FORMATS = {
    "transaction_count": ("integer", format_count),
    "total_amount": ("currency", format_currency),
    "avg_amount": ("currency", format_currency),
    "fraud_rate": ("percent", format_percent),
}


def format_kpis(kpis: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for key, value in kpis.items():
        hint, fmt = _KPI_FORMATS.get(key, ("number", str))
        out[key] = {"value": value, "format": hint, "display": fmt(value)}
    return out


def format_currency_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 2) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_currency(v, decimals) if pd.notna(v) else "")
    return formatted


def format_percent_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 1) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_percent(v, decimals) if pd.notna(v) else "")
    return formatted
