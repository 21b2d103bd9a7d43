"""
Response matrix for K10 survey data.

This module provides an immutable matrix with named rows (respondents)
and named columns (scale items), backed by a pandas DataFrame.
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Union, Any


class ResponseMatrix:
    """
    A rectangular, fully numeric matrix of survey responses.

    Rows are respondents, columns are scale items. The matrix never holds
    missing values and is never modified in place: every transform returns
    a new DataFrame.
    """

    def __init__(self,
                 matrix: Union[np.ndarray, pd.DataFrame],
                 rownames: Optional[List[Any]] = None,
                 colnames: Optional[List[Any]] = None):
        """
        Initialize a ResponseMatrix.

        Args:
            matrix: Response values (numpy array or pandas DataFrame)
            rownames: List of row names (defaults to 1..n)
            colnames: List of column names (defaults to the DataFrame columns)

        Raises:
            ValueError: If the data is not 2-dimensional, not numeric,
                contains missing values or has duplicate names
        """
        if isinstance(matrix, pd.DataFrame):
            frame = matrix.copy()
            if rownames is not None:
                frame.index = list(rownames)
            if colnames is not None:
                frame.columns = list(colnames)
        else:
            values = np.array(matrix, dtype=float)
            if values.ndim != 2:
                raise ValueError(f"Response data must be 2-dimensional, got {values.ndim} dimensions")
            rows = list(rownames) if rownames is not None else list(range(1, values.shape[0] + 1))
            cols = list(colnames) if colnames is not None else list(range(values.shape[1]))
            frame = pd.DataFrame(values, index=rows, columns=cols)

        if not frame.index.is_unique or not frame.columns.is_unique:
            raise ValueError("Row and column names must be unique")

        try:
            frame = frame.astype(float)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Response data must be numeric: {e}") from e

        if frame.isna().to_numpy().any():
            raise ValueError("Response data must not contain missing values")

        self._matrix = frame

    @property
    def values(self) -> np.ndarray:
        """Get the matrix as a read-only numpy array."""
        values = self._matrix.to_numpy(dtype=float, copy=True)
        values.setflags(write=False)
        return values

    @property
    def shape(self):
        return self._matrix.shape

    def rownames(self) -> List[Any]:
        """Get the list of row names."""
        return self._matrix.index.tolist()

    def colnames(self) -> List[Any]:
        """Get the list of column names."""
        return self._matrix.columns.tolist()

    def to_long(self,
                row_label: str = 'respondent',
                col_label: str = 'item',
                value_label: str = 'score') -> pd.DataFrame:
        """
        Reshape the matrix from wide to long format.

        Rows come out grouped by column in column order, and by row order
        within each column.

        Args:
            row_label: Name for the row-name column
            col_label: Name for the column-name column
            value_label: Name for the value column

        Returns:
            DataFrame with one (row, column, value) triple per cell
        """
        frame = self._matrix.rename_axis(index=row_label, columns=None)
        long_df = frame.reset_index().melt(
            id_vars=row_label,
            var_name=col_label,
            value_name=value_label
        )
        return long_df.reset_index(drop=True)

    def __len__(self) -> int:
        return len(self._matrix)

    def __repr__(self) -> str:
        return f"ResponseMatrix(rows={len(self)}, cols={self._matrix.shape[1]})"
