"""
Chart rendering for the K10 analysis.

Every function takes the already-computed numbers plus an explicit
ChartStyle and writes one image file. No function reads global plotting
state other than the non-interactive backend selected here.
"""

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from k10analysis.components.config import Config
from k10analysis.data.items import SCORE_LABELS

logger = logging.getLogger(__name__)


class ChartStyle:
    """
    Styling for one chart: palette, layout and axis text.
    """

    def __init__(self,
                 palette: str = 'viridis',
                 figsize: Sequence[float] = (8, 6),
                 columns: int = 1,
                 xlabel: str = '',
                 ylabel: str = '',
                 title: str = '',
                 dpi: int = 150):
        self.palette = palette
        self.figsize = tuple(figsize)
        self.columns = max(int(columns), 1)
        self.xlabel = xlabel
        self.ylabel = ylabel
        self.title = title
        self.dpi = int(dpi)

    @classmethod
    def from_config(cls, config: Config, chart: str) -> 'ChartStyle':
        """Build the style for a chart from the 'plots.<chart>' section."""
        settings = dict(config.get(f'plots.{chart}', {}) or {})
        settings.setdefault('dpi', config.get('output.dpi', 150))
        return cls(**settings)

    def __repr__(self) -> str:
        return f"ChartStyle(palette={self.palette!r}, figsize={self.figsize})"


def _save(fig, path: str, style: ChartStyle) -> str:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.savefig(path, dpi=style.dpi, bbox_inches='tight')
    plt.close(fig)
    logger.info(f"Saved chart to {path}")
    return path


def plot_item_histograms(counts: pd.DataFrame, path: str, style: ChartStyle) -> str:
    """
    One bar histogram per item, arranged in a grid in scale order.

    Args:
        counts: Output of item_score_counts
        path: Image file to write
        style: Chart style ('columns' sets the grid width)

    Returns:
        The path written
    """
    items = list(pd.unique(counts['item']))
    n_cols = min(style.columns, len(items))
    n_rows = int(np.ceil(len(items) / n_cols))

    fig, axes = plt.subplots(n_rows, n_cols, figsize=style.figsize,
                             sharex=True, sharey=True, squeeze=False)
    colors = sns.color_palette(style.palette, len(SCORE_LABELS))

    for ax, item in zip(axes.flat, items):
        item_counts = counts[counts['item'] == item]
        ax.bar(item_counts['score'], item_counts['count'], color=colors, edgecolor='white')
        ax.set_title(item_counts['label'].iloc[0], fontsize=8, wrap=True)
        ax.set_xticks(list(SCORE_LABELS.keys()))

    for ax in list(axes.flat)[len(items):]:
        ax.set_visible(False)

    for ax in axes[-1, :]:
        ax.set_xlabel(style.xlabel)
    for ax in axes[:, 0]:
        ax.set_ylabel(style.ylabel)

    fig.suptitle(style.title)
    fig.tight_layout()
    return _save(fig, path, style)


def plot_correlation_heatmap(corr_result: Dict[str, Any], path: str, style: ChartStyle) -> str:
    """
    Lower-triangular annotated heatmap of the hierarchically ordered correlations.

    Args:
        corr_result: Output of compute_item_correlation
        path: Image file to write
        style: Chart style (palette should be diverging)

    Returns:
        The path written
    """
    fig, ax = plt.subplots(figsize=style.figsize)
    sns.heatmap(
        corr_result['reordered'],
        mask=corr_result['mask'],
        cmap=style.palette,
        vmin=-1.0,
        vmax=1.0,
        center=0.0,
        annot=True,
        fmt='.2f',
        square=True,
        linewidths=0.5,
        cbar_kws={'shrink': 0.7, 'label': 'Correlation'},
        ax=ax
    )
    ax.set_title(style.title)
    ax.set_xlabel(style.xlabel)
    ax.set_ylabel(style.ylabel)
    return _save(fig, path, style)


def plot_elbow(table: pd.DataFrame, selected_k: Optional[int], path: str, style: ChartStyle) -> str:
    """
    Total within sum of squares against k, with the selected k highlighted.

    Args:
        table: Output of elbow_table
        selected_k: k to highlight (None for no highlight)
        path: Image file to write
        style: Chart style

    Returns:
        The path written
    """
    line_color, highlight_color = sns.color_palette(style.palette, 2)

    fig, ax = plt.subplots(figsize=style.figsize)
    ax.plot(table['k'], table['tot_withinss'], marker='o', color=line_color)

    if selected_k is not None and selected_k in set(table['k']):
        chosen = table[table['k'] == selected_k]
        ax.scatter(chosen['k'], chosen['tot_withinss'], s=160, facecolors='none',
                   edgecolors=highlight_color, linewidths=2, zorder=3,
                   label=f'Selected k = {selected_k}')
        ax.axvline(selected_k, color=highlight_color, linestyle='--', alpha=0.5)
        ax.legend()

    ax.set_xticks(list(table['k']))
    ax.set_title(style.title)
    ax.set_xlabel(style.xlabel)
    ax.set_ylabel(style.ylabel)
    ax.grid(True, alpha=0.3)
    return _save(fig, path, style)


def plot_cluster_scatter(scatter: pd.DataFrame, path: str, style: ChartStyle) -> str:
    """
    PCA projection coloured by cluster.

    Args:
        scatter: Output of projection_with_clusters
        path: Image file to write
        style: Chart style

    Returns:
        The path written
    """
    fig, ax = plt.subplots(figsize=style.figsize)
    sns.scatterplot(data=scatter, x='pc1', y='pc2', hue='cluster',
                    palette=style.palette, alpha=0.7, s=30, ax=ax)
    ax.legend(title='Cluster')
    ax.set_title(style.title)
    ax.set_xlabel(style.xlabel)
    ax.set_ylabel(style.ylabel)
    ax.grid(True, alpha=0.3)
    return _save(fig, path, style)


def plot_centroids(centroids: pd.DataFrame, path: str, style: ChartStyle) -> str:
    """
    Dodged horizontal bars of average item score per cluster.

    Args:
        centroids: Output of centroid_table
        path: Image file to write
        style: Chart style

    Returns:
        The path written
    """
    cluster_order: List[int] = list(centroids['cluster'].cat.categories)
    sizes = {int(c): int(n) for c, n in zip(centroids['cluster'], centroids['size'])}
    item_labels = centroids.drop_duplicates('item').sort_values('item')['label'].tolist()

    def group_name(cluster) -> str:
        return f"Cluster {cluster} (n={sizes[int(cluster)]})"

    data = centroids.assign(group=[group_name(c) for c in centroids['cluster']])
    hue_order = [group_name(c) for c in cluster_order]

    fig, ax = plt.subplots(figsize=style.figsize)
    sns.barplot(data=data, x='avg_score', y='label', hue='group',
                order=item_labels, hue_order=hue_order,
                palette=style.palette, orient='h', ax=ax)
    ax.set_xlim(0, max(SCORE_LABELS))
    ax.legend(title='Lowest to highest distress', loc='lower right')
    ax.set_title(style.title)
    ax.set_xlabel(style.xlabel)
    ax.set_ylabel(style.ylabel)
    return _save(fig, path, style)
