"""
PCA (Principal Component Analysis) of survey responses.

Components come from an eigen-decomposition of the covariance (or, when
scaling, the correlation) matrix. Eigenvectors are only defined up to
sign, and up to rotation when eigenvalues repeat. The sign is fixed here by
making the largest-magnitude loading of every component positive, so the
same input always gives the same projection. Rotations within a repeated
eigenvalue are left to numpy.
"""

import logging
from typing import Dict, Union

import numpy as np
import pandas as pd

from k10analysis.math.response_matrix import ResponseMatrix

logger = logging.getLogger(__name__)


def normalize_vector(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector to unit length.

    Args:
        v: Vector to normalize

    Returns:
        Normalized vector (zero vectors are returned unchanged)
    """
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def orient_component(v: np.ndarray) -> np.ndarray:
    """
    Flip a component so its largest-magnitude loading is positive.

    Ties between loadings of equal magnitude go to the first one.
    """
    if not np.any(v):
        return v
    pivot = int(np.argmax(np.abs(v)))
    return -v if v[pivot] < 0 else v


def compute_pca(data: np.ndarray,
                n_comps: int = 2,
                scale: bool = False) -> Dict[str, np.ndarray]:
    """
    Find the first n_comps principal components of the data matrix.

    Args:
        data: Data matrix (rows are records)
        n_comps: Number of components to find
        scale: Divide each column by its standard deviation first

    Returns:
        Dictionary with 'center', 'scale', 'comps' (n_comps x n_cols),
        'eigenvalues' and 'explained_variance_ratio'
    """
    data = np.asarray(data, dtype=float)
    n_rows, n_cols = data.shape
    if n_rows == 0:
        raise ValueError("Cannot compute PCA of an empty data matrix")
    if n_comps < 1 or n_comps > n_cols:
        raise ValueError(f"n_comps must be between 1 and {n_cols}, got {n_comps}")

    center = np.mean(data, axis=0)
    col_scale = np.ones(n_cols)
    if scale and n_rows > 1:
        col_scale = np.std(data, axis=0, ddof=1)
        # Constant columns carry no variance; leave them unscaled
        col_scale[col_scale == 0] = 1.0

    prepared = (data - center) / col_scale

    # Handle edge case: 1 row, no variance in any direction
    if n_rows == 1:
        comps = np.eye(n_cols)[:n_comps]
        return {
            'center': center,
            'scale': col_scale,
            'comps': comps,
            'eigenvalues': np.zeros(n_comps),
            'explained_variance_ratio': np.zeros(n_comps),
        }

    cov = prepared.T @ prepared / (n_rows - 1)
    eigenvalues, eigenvectors = np.linalg.eigh(cov)

    # eigh returns ascending eigenvalues
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = np.clip(eigenvalues[order], 0.0, None)
    eigenvectors = eigenvectors[:, order]

    comps = np.vstack([
        orient_component(normalize_vector(eigenvectors[:, i]))
        for i in range(n_comps)
    ])

    total = eigenvalues.sum()
    ratio = eigenvalues[:n_comps] / total if total > 0 else np.zeros(n_comps)

    return {
        'center': center,
        'scale': col_scale,
        'comps': comps,
        'eigenvalues': eigenvalues[:n_comps],
        'explained_variance_ratio': ratio,
    }


def project(data: np.ndarray, pca_results: Dict[str, np.ndarray]) -> np.ndarray:
    """
    Project records onto the principal components.

    Args:
        data: Data matrix
        pca_results: Output of compute_pca

    Returns:
        Array of shape (n_rows, n_comps)
    """
    prepared = (np.asarray(data, dtype=float) - pca_results['center']) / pca_results['scale']
    return prepared @ pca_results['comps'].T


def project_responses(data: Union[ResponseMatrix, np.ndarray],
                      n_comps: int = 2,
                      scale: bool = False):
    """
    Perform PCA on a ResponseMatrix and project every record.

    Args:
        data: ResponseMatrix (or plain data matrix)
        n_comps: Number of components to keep
        scale: Standardize columns before the decomposition

    Returns:
        Tuple of (pca_results, projection DataFrame with columns pc1..pcN,
        one row per record in input order)
    """
    if isinstance(data, ResponseMatrix):
        values, index = data.values, data.rownames()
    else:
        values = np.asarray(data, dtype=float)
        index = list(range(values.shape[0]))

    pca_results = compute_pca(values, n_comps, scale)
    coords = project(values, pca_results)

    explained = ', '.join(f"{r:.1%}" for r in pca_results['explained_variance_ratio'])
    logger.info(f"PCA explained variance by component: {explained}")

    projection = pd.DataFrame(
        coords,
        index=index,
        columns=[f"pc{i + 1}" for i in range(coords.shape[1])]
    )
    return pca_results, projection
