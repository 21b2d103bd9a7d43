"""
Item correlation and hierarchical ordering.

This module computes the inter-item correlation matrix and orders items by
hierarchical clustering of that matrix, so related items sit next to each
other in the heatmap.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import scipy.cluster.hierarchy as hcluster
import scipy.stats
from scipy.spatial.distance import squareform

from k10analysis.math.response_matrix import ResponseMatrix

logger = logging.getLogger(__name__)


def correlation_matrix(nmat: ResponseMatrix, method: str = 'pearson') -> np.ndarray:
    """
    Compute the column-by-column correlation matrix of a ResponseMatrix.

    Args:
        nmat: ResponseMatrix to compute correlations for
        method: Correlation method ('pearson' or 'spearman')

    Returns:
        Correlation matrix as numpy array (n_cols x n_cols)
    """
    values = nmat.values

    if method == 'pearson':
        with np.errstate(divide='ignore', invalid='ignore'):
            corr = np.corrcoef(values, rowvar=False)
    elif method == 'spearman':
        corr, _ = scipy.stats.spearmanr(values)
    else:
        raise ValueError(f"Unknown correlation method: {method}")

    corr = np.atleast_2d(corr)
    if np.isnan(corr).any():
        constant = [name for name, sd in zip(nmat.colnames(), np.std(values, axis=0)) if sd == 0]
        logger.warning(f"Correlation undefined for constant columns {constant}; using 0")
        corr = np.nan_to_num(corr, nan=0.0)
        np.fill_diagonal(corr, 1.0)

    return corr


def hierarchical_order(corr: np.ndarray, method: str = 'complete') -> List[int]:
    """
    Order variables by hierarchical clustering of a correlation matrix.

    The distance between two variables is 1 - r.

    Args:
        corr: Correlation matrix
        method: Linkage method ('complete', 'average', 'single', ...)

    Returns:
        Leaf order as a list of column positions
    """
    n = corr.shape[0]
    if n < 3:
        return list(range(n))

    distances = 1.0 - np.asarray(corr, dtype=float)
    distances = (distances + distances.T) / 2.0
    np.fill_diagonal(distances, 0.0)
    distances = np.clip(distances, 0.0, None)

    linkage = hcluster.linkage(squareform(distances, checks=False), method=method)
    return hcluster.leaves_list(linkage).tolist()


def blockify_correlation_matrix(corr_matrix: np.ndarray,
                                row_order: List[int],
                                col_order: Optional[List[int]] = None) -> np.ndarray:
    """
    Reorder a correlation matrix based on clustering results.

    Args:
        corr_matrix: Correlation matrix to reorder
        row_order: List of row indices in desired order
        col_order: List of column indices in desired order (defaults to row_order)

    Returns:
        Reordered correlation matrix
    """
    if col_order is None:
        col_order = row_order
    return corr_matrix[np.ix_(row_order, col_order)]


def lower_triangle_mask(n: int) -> np.ndarray:
    """Boolean mask hiding the diagonal and everything above it."""
    return np.triu(np.ones((n, n), dtype=bool))


def compute_item_correlation(nmat: ResponseMatrix,
                             method: str = 'pearson',
                             cluster_method: str = 'complete') -> Dict[str, Any]:
    """
    Compute item correlations and their hierarchical ordering.

    Args:
        nmat: ResponseMatrix with items as columns
        method: Correlation method
        cluster_method: Hierarchical clustering linkage method

    Returns:
        Dictionary with 'correlation' (DataFrame in scale order),
        'order' (item names in hierarchical order), 'reordered'
        (DataFrame in hierarchical order) and 'mask' (lower-triangle mask
        for the reordered matrix)
    """
    items = nmat.colnames()
    corr = correlation_matrix(nmat, method)
    leaf_order = hierarchical_order(corr, cluster_method)
    ordered_items = [items[i] for i in leaf_order]

    return {
        'correlation': pd.DataFrame(corr, index=items, columns=items),
        'order': ordered_items,
        'reordered': pd.DataFrame(
            blockify_correlation_matrix(corr, leaf_order),
            index=ordered_items,
            columns=ordered_items
        ),
        'mask': lower_triangle_mask(len(items)),
    }


def prepare_correlation_export(corr_result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Prepare correlation results for export to JSON.

    Args:
        corr_result: Result from compute_item_correlation

    Returns:
        Export-ready dictionary
    """
    return {
        'items': corr_result['correlation'].index.tolist(),
        'correlation': corr_result['correlation'].to_numpy().tolist(),
        'order': list(corr_result['order']),
    }
