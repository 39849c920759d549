"""
Infrastructure layer: Tree observation CSV loading with retry logic.
"""
import io
import logging
from pathlib import Path
from typing import List, Optional
import httpx
import pandas as pd
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from blightmap.config import settings
from blightmap.domain.models import TreeCondition, TreeObservation

logger = logging.getLogger(__name__)


class CsvColumns:
    """Column headers of the supported survey CSV layouts."""

    # Yearly park survey (time series)
    YEAR = "年度"
    NUMBER = "番号"
    TREE_ID = "樹木ID"
    SPECIES = "樹種名"
    LOCATION = "立地"
    CIRCUMFERENCE = "木の周囲_cm"
    HEIGHT = "樹高_m"
    CONDITION = "状態"
    NOTES = "備考"
    LATITUDE = "緯度"
    LONGITUDE = "経度"

    TIME_SERIES = [
        YEAR, NUMBER, TREE_ID, SPECIES, LOCATION, CIRCUMFERENCE,
        HEIGHT, CONDITION, NOTES, LATITUDE, LONGITUDE,
    ]

    # Municipal open data
    FACILITY_TYPE = "施設区分"
    KIND = "種類"
    ADDRESS = "所在地"

    SUGINAMI = [YEAR, TREE_ID, LATITUDE, LONGITUDE, FACILITY_TYPE, KIND, NOTES, ADDRESS]


class TreeDataLoadError(Exception):
    """Raised when tree data cannot be fetched or parsed."""

    def __init__(self, message: str, status_code: int = 503):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def detect_format(columns: List[str]) -> str:
    """
    Work out the CSV layout from its headers.

    Args:
        columns: Header names

    Returns:
        "time_series" or "suginami"

    Raises:
        TreeDataLoadError: If the headers match no known layout
    """
    if CsvColumns.CONDITION in columns:
        return "time_series"
    if CsvColumns.FACILITY_TYPE in columns:
        return "suginami"
    raise TreeDataLoadError(f"Unrecognised CSV headers: {', '.join(columns)}", status_code=422)


def _numeric(frame: pd.DataFrame, column: str) -> pd.Series:
    if column not in frame.columns:
        return pd.Series([float("nan")] * len(frame), index=frame.index)
    return pd.to_numeric(frame[column], errors="coerce")


def _text(frame: pd.DataFrame, column: str, default: str = "") -> pd.Series:
    if column not in frame.columns:
        return pd.Series([default] * len(frame), index=frame.index)
    values = frame[column].fillna("").astype(str).str.strip()
    return values.where(values != "", default)


def _drop_invalid_coordinates(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.assign(
        latitude=_numeric(frame, CsvColumns.LATITUDE),
        longitude=_numeric(frame, CsvColumns.LONGITUDE),
    )
    valid = frame["latitude"].notna() & frame["longitude"].notna()
    dropped = int((~valid).sum())
    if dropped:
        logger.warning(f"Dropped {dropped} rows with invalid coordinates")
    return frame[valid]


def _parse_time_series(frame: pd.DataFrame) -> List[TreeObservation]:
    frame = _drop_invalid_coordinates(frame)
    years = _numeric(frame, CsvColumns.YEAR).fillna(0).astype(int)
    numbers = _numeric(frame, CsvColumns.NUMBER).fillna(0).astype(int)
    circumferences = _numeric(frame, CsvColumns.CIRCUMFERENCE).fillna(0.0)
    heights = _numeric(frame, CsvColumns.HEIGHT).fillna(0.0)
    tree_ids = _text(frame, CsvColumns.TREE_ID)
    species = _text(frame, CsvColumns.SPECIES, "Unknown")
    locations = _text(frame, CsvColumns.LOCATION)
    conditions = _text(frame, CsvColumns.CONDITION)
    notes = _text(frame, CsvColumns.NOTES)

    return [
        TreeObservation(
            tree_id=tree_ids[idx],
            year=int(years[idx]),
            number=int(numbers[idx]),
            species=species[idx],
            location=locations[idx],
            circumference_cm=float(circumferences[idx]),
            height_m=float(heights[idx]),
            condition=TreeCondition.from_label(conditions[idx]),
            notes=notes[idx],
            latitude=float(frame.at[idx, "latitude"]),
            longitude=float(frame.at[idx, "longitude"]),
        )
        for idx in frame.index
    ]


def _parse_suginami(frame: pd.DataFrame) -> List[TreeObservation]:
    frame = _drop_invalid_coordinates(frame)
    years = _numeric(frame, CsvColumns.YEAR)
    if years.isna().any():
        logger.warning(f"Dropped {int(years.isna().sum())} rows with invalid year")
        frame = frame[years.notna()]
        years = years[years.notna()]

    tree_ids = _text(frame, CsvColumns.TREE_ID)
    facility = _text(frame, CsvColumns.FACILITY_TYPE)
    kinds = _text(frame, CsvColumns.KIND, "Unknown")
    remarks = _text(frame, CsvColumns.NOTES)
    addresses = _text(frame, CsvColumns.ADDRESS)

    trees = []
    for idx in frame.index:
        note = facility[idx] + (f" - {remarks[idx]}" if remarks[idx] else "")
        trees.append(TreeObservation(
            tree_id=tree_ids[idx],
            year=int(years[idx]),
            number=int(idx) + 1,
            species=kinds[idx],
            location=addresses[idx],
            condition=TreeCondition.HEALTHY,
            notes=note,
            latitude=float(frame.at[idx, "latitude"]),
            longitude=float(frame.at[idx, "longitude"]),
        ))
    return trees


def parse_tree_csv(
    text: str,
    fmt: str = "auto",
    row_limit: int = 0,
) -> List[TreeObservation]:
    """
    Parse survey CSV text into tree observations.

    Rows with non-numeric coordinates are dropped; missing numeric fields
    default to 0 and missing text fields to ''.

    Args:
        text: CSV content (a leading BOM is ignored)
        fmt: "auto", "time_series" or "suginami"
        row_limit: Maximum rows to read, 0 for all

    Returns:
        List of TreeObservation instances in file order

    Raises:
        TreeDataLoadError: If the CSV cannot be parsed
    """
    try:
        frame = pd.read_csv(
            io.StringIO(text.lstrip("\ufeff")),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            nrows=row_limit or None,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise TreeDataLoadError(f"Failed to parse tree CSV: {str(e)}", status_code=422)

    frame.columns = [str(c).strip() for c in frame.columns]
    layout = detect_format(list(frame.columns)) if fmt == "auto" else fmt

    if layout == "time_series":
        trees = _parse_time_series(frame)
    elif layout == "suginami":
        trees = _parse_suginami(frame)
    else:
        raise TreeDataLoadError(f"Unknown CSV format '{fmt}'", status_code=422)

    logger.info(f"Parsed {len(trees)} tree observations ({layout} layout)")
    return trees


class TreeDataLoader:
    """
    Loader for tree observation CSV files.
    Reads a local file or fetches an http(s) URL with retry logic.
    """

    def __init__(
        self,
        source: Optional[str] = None,
        fmt: Optional[str] = None,
    ):
        """Initialize the loader with configuration."""
        self.source = source or settings.tree_data_source
        self.fmt = fmt or settings.tree_data_format
        self.client = httpx.AsyncClient(timeout=settings.request_timeout)

    async def __aenter__(self) -> "TreeDataLoader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @property
    def is_remote(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _fetch_remote(self) -> str:
        """
        Fetch the CSV over HTTP with retry logic.

        Returns:
            Response body as text

        Raises:
            TreeDataLoadError: On client errors
            httpx.HTTPStatusError: On server errors (retried)
            httpx.RequestError: On transport errors (retried)
        """
        response = await self.client.get(self.source)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # Retry on server errors (5xx)
            if e.response.status_code >= 500:
                raise
            raise TreeDataLoadError(
                f"Tree data request failed: {e.response.status_code}"
            )
        return response.content.decode("utf-8-sig")

    def _read_local(self) -> str:
        path = Path(self.source)
        try:
            return path.read_text(encoding="utf-8-sig")
        except OSError as e:
            raise TreeDataLoadError(f"Cannot read tree data file {path}: {e.strerror or str(e)}")

    async def load(self) -> List[TreeObservation]:
        """
        Load and parse all tree observations from the configured source.

        Returns:
            List of TreeObservation instances

        Raises:
            TreeDataLoadError: If the data cannot be fetched or parsed
        """
        logger.info(f"Loading tree data from {self.source}")
        if self.is_remote:
            try:
                text = await self._fetch_remote()
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                raise TreeDataLoadError(f"Tree data request error: {str(e)}")
        else:
            text = self._read_local()

        return parse_tree_csv(text, self.fmt, settings.load_row_limit)


# Singleton instance
_tree_loader: Optional[TreeDataLoader] = None


def get_tree_loader() -> TreeDataLoader:
    """
    Get or create the singleton tree data loader instance.

    Returns:
        TreeDataLoader instance
    """
    global _tree_loader
    if _tree_loader is None:
        _tree_loader = TreeDataLoader()
    return _tree_loader
