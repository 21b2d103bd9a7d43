"""
Choosing the number of clusters.

The elbow of the total-within-sum-of-squares curve is a judgment call. A
manually chosen k always wins; the automatic suggestion is advisory and is
only used when no k is given.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from k10analysis.math.clusters import ClusterFit, ClusterFitCollection

logger = logging.getLogger(__name__)

MANUAL = 'manual'
AUTOMATIC = 'automatic'


def elbow_table(collection: ClusterFitCollection) -> pd.DataFrame:
    """
    Tabulate the fit quality per k.

    Returns:
        DataFrame with columns k, tot_withinss, reduction (drop from the
        previous k, NaN for the first) and silhouette (NaN where undefined)
    """
    ks = collection.ks()
    wss = collection.tot_withinss()
    table = pd.DataFrame({'k': ks, 'tot_withinss': wss})
    table['reduction'] = -table['tot_withinss'].diff()
    table['silhouette'] = [
        np.nan if collection.silhouettes.get(k) is None else collection.silhouettes[k]
        for k in ks
    ]
    return table


def suggest_k(collection: ClusterFitCollection) -> Optional[int]:
    """
    Suggest an elbow from the total-within-sum-of-squares curve.

    Picks the k whose point lies farthest below the straight line joining
    the first and last points of the curve.

    Returns:
        The suggested k, or None with fewer than three fits or a curve
        without any bend
    """
    ks = np.array(collection.ks(), dtype=float)
    wss = np.array(collection.tot_withinss(), dtype=float)
    if len(ks) < 3:
        return None

    chord = wss[0] + (wss[-1] - wss[0]) * (ks - ks[0]) / (ks[-1] - ks[0])
    gap = chord - wss
    if np.max(gap) <= 0:
        return None
    return int(ks[int(np.argmax(gap))])


class SelectedModel:
    """
    The fit chosen for reporting, with a record of how it was chosen.
    """

    def __init__(self, fit: ClusterFit, method: str, suggested_k: Optional[int] = None):
        self.fit = fit
        self.method = method
        self.suggested_k = suggested_k

    @property
    def k(self) -> int:
        return self.fit.k

    @property
    def labels(self) -> np.ndarray:
        return self.fit.labels

    @property
    def centers(self) -> np.ndarray:
        return self.fit.centers

    @property
    def sizes(self) -> np.ndarray:
        return self.fit.sizes

    def to_dict(self) -> Dict[str, Any]:
        return {
            'k': self.k,
            'method': self.method,
            'suggested_k': self.suggested_k,
        }

    def __repr__(self) -> str:
        return f"SelectedModel(k={self.k}, method={self.method!r})"


def select_model(collection: ClusterFitCollection, k: Optional[int] = None) -> SelectedModel:
    """
    Select the fit to report on.

    Args:
        collection: Fits for every candidate k
        k: Manually chosen number of clusters; None uses the suggestion

    Returns:
        SelectedModel

    Raises:
        KeyError: If k was not fitted
        ValueError: If no k is given and no elbow can be suggested
    """
    suggested = suggest_k(collection)

    if k is not None:
        fit = collection.get(k)
        if suggested is not None and suggested != k:
            logger.info(f"Using manually selected k={k} (automatic elbow suggests k={suggested})")
        else:
            logger.info(f"Using manually selected k={k}")
        return SelectedModel(fit, MANUAL, suggested)

    if suggested is None:
        raise ValueError("No k given and the elbow curve has no usable bend")

    logger.info(f"Using automatically suggested k={suggested}; review the elbow chart")
    return SelectedModel(collection.get(suggested), AUTOMATIC, suggested)
