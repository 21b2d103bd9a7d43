"""
Cluster summaries for reporting.

Pure reshaping and ordering of an existing fit; nothing here refits or
recomputes centroids.
"""

from typing import List

import numpy as np
import pandas as pd

from k10analysis.data.items import K10_ITEMS, short_label
from k10analysis.math.clusters import ClusterFit


def cluster_order(fit: ClusterFit) -> List[int]:
    """
    Cluster labels ordered by overall distress, lowest first.

    Overall distress is the mean of the centroid across items. Ties keep
    label order.
    """
    overall = fit.centers.mean(axis=1)
    return [int(i) + 1 for i in np.argsort(overall, kind='stable')]


def cluster_summary(fit: ClusterFit) -> pd.DataFrame:
    """
    One row per cluster with size, share of records and mean item score.

    Rows follow cluster_order.
    """
    total = int(fit.sizes.sum())
    rows = []
    for label in cluster_order(fit):
        size = int(fit.sizes[label - 1])
        rows.append({
            'cluster': label,
            'size': size,
            'share': size / total if total else 0.0,
            'mean_score': float(fit.centers[label - 1].mean()),
        })
    return pd.DataFrame(rows, columns=['cluster', 'size', 'share', 'mean_score'])


def centroid_table(fit: ClusterFit, items: List[str]) -> pd.DataFrame:
    """
    Reshape centroids into (cluster, item, average score) rows.

    Args:
        fit: The selected cluster fit
        items: Item names, in the column order the fit was made with

    Returns:
        Long DataFrame with columns cluster, size, item, label, question,
        avg_score. Clusters are an ordered categorical following
        cluster_order; items follow scale order.
    """
    if len(items) != fit.centers.shape[1]:
        raise ValueError(
            f"Expected {fit.centers.shape[1]} item names, got {len(items)}"
        )

    order = cluster_order(fit)
    rows = []
    for label in order:
        for j, item in enumerate(items):
            rows.append({
                'cluster': label,
                'size': int(fit.sizes[label - 1]),
                'item': item,
                'label': short_label(item) if item in K10_ITEMS else str(item),
                'question': K10_ITEMS.get(item, str(item)),
                'avg_score': float(fit.centers[label - 1, j]),
            })

    table = pd.DataFrame(rows)
    table['cluster'] = pd.Categorical(table['cluster'], categories=order, ordered=True)
    table['item'] = pd.Categorical(table['item'], categories=list(items), ordered=True)
    return table


def projection_with_clusters(projection: pd.DataFrame, fit: ClusterFit) -> pd.DataFrame:
    """
    Attach cluster labels to a PCA projection by record position.

    Raises:
        ValueError: If the row counts differ
    """
    if len(projection) != len(fit.labels):
        raise ValueError(
            f"Projection has {len(projection)} rows but the fit labels {len(fit.labels)} records"
        )
    result = projection.copy()
    result['cluster'] = pd.Categorical(
        np.asarray(fit.labels), categories=list(range(1, fit.k + 1))
    )
    return result
