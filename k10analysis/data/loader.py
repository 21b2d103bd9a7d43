"""
Loading and cleaning of K10 survey responses.

Reads a delimited file, normalizes column names to snake case, keeps the
ten scale items and drops every row with a missing item value.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from k10analysis.data.items import K10_ITEM_IDS, MIN_SCORE, MAX_SCORE
from k10analysis.math.response_matrix import ResponseMatrix

logger = logging.getLogger(__name__)


class ResponseDataError(ValueError):
    """Base class for problems with the response data."""


class DataLoadError(ResponseDataError):
    """The input file could not be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Could not load responses from '{path}': {reason}")


class SchemaError(ResponseDataError):
    """The input does not have the expected columns or value types."""

    def __init__(self, message: str, columns: Optional[List[str]] = None):
        self.columns = list(columns or [])
        super().__init__(message)


class EmptyDataError(ResponseDataError):
    """No complete responses remain after cleaning."""


_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')
_NON_ALNUM = re.compile(r'[^0-9a-zA-Z]+')


def normalize_column_name(name: Any) -> str:
    """
    Normalize a column name to snake case.

    Splits camelCase words, lower-cases, and collapses every run of
    non-alphanumeric characters into a single underscore.

    Args:
        name: Raw column name

    Returns:
        Normalized name, e.g. 'K10 Item-1' -> 'k10_item_1'
    """
    text = _CAMEL_BOUNDARY.sub('_', str(name).strip())
    text = _NON_ALNUM.sub('_', text).strip('_')
    return text.lower()


def normalize_columns(df: pd.DataFrame,
                      items: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Return a copy of df with normalized column names.

    Extra columns that collide after normalization are ignored like any
    other extra column: only the first of them is kept.

    Args:
        df: Raw table
        items: Item columns that must be unambiguous (defaults to the K10 items)

    Raises:
        SchemaError: If two columns normalize to the same item name
    """
    items = set(items or K10_ITEM_IDS)
    names = [normalize_column_name(col) for col in df.columns]
    duplicates = sorted({name for name in names if names.count(name) > 1})

    clashing = [name for name in duplicates if name in items]
    if clashing:
        raise SchemaError(
            f"Columns collide after name normalization: {', '.join(clashing)}",
            clashing
        )
    if duplicates:
        logger.debug(f"Ignoring repeated extra columns: {', '.join(duplicates)}")

    result = df.copy()
    result.columns = names
    return result.loc[:, ~result.columns.duplicated()]


def read_table(path: str, delimiter: str = ',') -> pd.DataFrame:
    """
    Read a delimited file with a header row.

    Raises:
        DataLoadError: If the file is missing or cannot be parsed
    """
    try:
        return pd.read_csv(path, sep=delimiter)
    except FileNotFoundError as e:
        raise DataLoadError(path, "file not found") from e
    except (OSError, UnicodeDecodeError) as e:
        raise DataLoadError(path, str(e)) from e
    except pd.errors.EmptyDataError as e:
        raise DataLoadError(path, "file is empty") from e
    except pd.errors.ParserError as e:
        raise DataLoadError(path, f"could not parse file: {e}") from e


def _check_values(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce item columns to integers in the scale range."""
    result = df.copy()
    for col in result.columns:
        numeric = pd.to_numeric(result[col], errors='coerce')
        if numeric.isna().any():
            raise SchemaError(f"Column '{col}' contains non-numeric values", [col])
        values = numeric.to_numpy(dtype=float)
        if not np.all(np.equal(np.mod(values, 1), 0)):
            raise SchemaError(f"Column '{col}' contains non-integer scores", [col])
        if values.min() < MIN_SCORE or values.max() > MAX_SCORE:
            raise SchemaError(
                f"Column '{col}' has scores outside {MIN_SCORE}-{MAX_SCORE}", [col]
            )
        result[col] = values.astype(int)
    return result


def clean_responses(df: pd.DataFrame,
                    items: Optional[List[str]] = None) -> Tuple[pd.DataFrame, int]:
    """
    Select the item columns and drop incomplete rows.

    Args:
        df: Raw table with normalized column names
        items: Item columns to keep, in order (defaults to the K10 items)

    Returns:
        Tuple of (cleaned table, number of dropped rows)

    Raises:
        SchemaError: If any item column is missing or holds invalid scores
        EmptyDataError: If no complete row remains
    """
    items = list(items or K10_ITEM_IDS)

    missing = [item for item in items if item not in df.columns]
    if missing:
        raise SchemaError(f"Missing expected columns: {', '.join(missing)}", missing)

    selected = df[items]
    complete = selected.dropna(how='any')
    n_dropped = len(selected) - len(complete)

    if complete.empty:
        raise EmptyDataError(
            f"No complete responses after dropping {n_dropped} rows with missing items"
        )

    return _check_values(complete), n_dropped


def load_responses(path: str,
                   delimiter: str = ',',
                   items: Optional[List[str]] = None) -> Tuple[ResponseMatrix, Dict[str, Any]]:
    """
    Load a survey file into a ResponseMatrix.

    Row names are the 1-based position of each record in the file, so
    dropped rows leave gaps and the original order is kept.

    Args:
        path: Path to a delimited file with a header row
        delimiter: Field delimiter
        items: Item columns to keep (defaults to the K10 items)

    Returns:
        Tuple of (response matrix, load report)
    """
    raw = read_table(path, delimiter)
    logger.info(f"Read {len(raw)} rows and {len(raw.columns)} columns from {path}")

    normalized = normalize_columns(raw, items)
    normalized.index = range(1, len(normalized) + 1)

    cleaned, n_dropped = clean_responses(normalized, items)
    if n_dropped:
        logger.info(f"Dropped {n_dropped} rows with missing item responses")

    matrix = ResponseMatrix(cleaned)
    report = {
        'path': str(path),
        'rows_read': int(len(raw)),
        'rows_dropped': int(n_dropped),
        'rows_kept': int(len(matrix)),
    }
    return matrix, report
