"""
End-to-end K10 analysis.

This module ties the components together: load and clean the responses,
describe them, fit k-means over the candidate k range, select a model,
project onto principal components and report on the clusters. Every step
finishes before the next starts and nothing feeds back.
"""

import json
import logging
import os
import time
from typing import Any, Dict, Optional

import numpy as np

from k10analysis.components.config import Config, ConfigManager
from k10analysis.data.loader import load_responses
from k10analysis.math.clusters import fit_cluster_range
from k10analysis.math.corr import compute_item_correlation, prepare_correlation_export
from k10analysis.math.descriptive import item_score_counts
from k10analysis.math.pca import project_responses
from k10analysis.math.report import (
    centroid_table, cluster_summary, projection_with_clusters
)
from k10analysis.math.selection import elbow_table, select_model
from k10analysis import plots

logger = logging.getLogger(__name__)

CHART_FILES = {
    'histograms': 'item_histograms',
    'correlation': 'item_correlation',
    'elbow': 'elbow',
    'scatter': 'pca_clusters',
    'centroids': 'cluster_centroids',
}


class AnalysisPipeline:
    """
    Runs the analysis once for a configuration.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the pipeline.

        Args:
            config: Configuration for the run
        """
        self.config = config or ConfigManager.get_config()

    def _chart_path(self, chart: str) -> str:
        output_dir = self.config.get('output.dir')
        fmt = self.config.get('output.format', 'png')
        return os.path.join(output_dir, f"{CHART_FILES[chart]}.{fmt}")

    def _style(self, chart: str) -> plots.ChartStyle:
        return plots.ChartStyle.from_config(self.config, chart)

    def run(self, data_path: Optional[str] = None, render: bool = True) -> Dict[str, Any]:
        """
        Run every step of the analysis.

        Args:
            data_path: Input file (defaults to data.path from the configuration)
            render: Write chart images and the summary file

        Returns:
            Dictionary with the intermediate results: 'matrix', 'load_report',
            'counts', 'correlation', 'fits', 'elbow', 'selected', 'pca',
            'projection', 'scatter', 'centroids', 'clusters', 'summary'
            and 'outputs' (paths written)

        Raises:
            ValueError: If no input path is configured
        """
        start_time = time.time()
        data_path = data_path or self.config.get('data.path')
        if not data_path:
            raise ValueError("No input file given; pass a path or set data.path / K10_DATA_PATH")

        # Load
        matrix, load_report = load_responses(
            data_path, delimiter=self.config.get('data.delimiter', ',')
        )
        logger.info(f"Loaded {load_report['rows_kept']} complete responses "
                    f"({load_report['rows_dropped']} dropped)")

        # Describe
        counts = item_score_counts(matrix)
        correlation = compute_item_correlation(
            matrix,
            method=self.config.get('correlation.method', 'pearson'),
            cluster_method=self.config.get('correlation.cluster-method', 'complete')
        )
        logger.info(f"Hierarchical item order: {', '.join(correlation['order'])}")

        # Cluster
        ks = range(self.config.get('clustering.k-min'), self.config.get('clustering.k-max') + 1)
        fits = fit_cluster_range(
            matrix,
            ks=ks,
            seed=self.config.get('clustering.seed'),
            n_init=self.config.get('clustering.n-init'),
            max_iters=self.config.get('clustering.max-iters'),
            tol=self.config.get('clustering.tol')
        )
        elbow = elbow_table(fits)

        # Select
        selected = select_model(fits, self.config.get('clustering.selected-k'))

        # Reduce
        pca_results, projection = project_responses(
            matrix,
            n_comps=self.config.get('pca.n-comps', 2),
            scale=self.config.get('pca.scale', False)
        )

        # Report
        scatter = projection_with_clusters(projection, selected.fit)
        centroids = centroid_table(selected.fit, matrix.colnames())
        clusters = cluster_summary(selected.fit)

        summary = self.build_summary(load_report, correlation, elbow, selected,
                                     pca_results, clusters, matrix.colnames())

        outputs = {}
        if render:
            outputs = self.render(counts, correlation, elbow, selected.k, scatter, centroids)
            outputs['summary'] = self.write_summary(summary)

        logger.info(f"Analysis completed in {time.time() - start_time:.2f}s")

        return {
            'matrix': matrix,
            'load_report': load_report,
            'counts': counts,
            'correlation': correlation,
            'fits': fits,
            'elbow': elbow,
            'selected': selected,
            'pca': pca_results,
            'projection': projection,
            'scatter': scatter,
            'centroids': centroids,
            'clusters': clusters,
            'summary': summary,
            'outputs': outputs,
        }

    def render(self, counts, correlation, elbow, selected_k, scatter, centroids) -> Dict[str, str]:
        """
        Write every chart.

        Returns:
            Mapping of chart name to the file written
        """
        return {
            'histograms': plots.plot_item_histograms(
                counts, self._chart_path('histograms'), self._style('histograms')),
            'correlation': plots.plot_correlation_heatmap(
                correlation, self._chart_path('correlation'), self._style('correlation')),
            'elbow': plots.plot_elbow(
                elbow, selected_k, self._chart_path('elbow'), self._style('elbow')),
            'scatter': plots.plot_cluster_scatter(
                scatter, self._chart_path('scatter'), self._style('scatter')),
            'centroids': plots.plot_centroids(
                centroids, self._chart_path('centroids'), self._style('centroids')),
        }

    def build_summary(self, load_report, correlation, elbow, selected,
                      pca_results, clusters, items) -> Dict[str, Any]:
        """
        Collect the numbers behind the charts into plain data.
        """
        fit = selected.fit
        return {
            'load': load_report,
            'correlation': prepare_correlation_export(correlation),
            'elbow': [
                {
                    'k': int(row.k),
                    'tot_withinss': float(row.tot_withinss),
                    'silhouette': None if np.isnan(row.silhouette) else float(row.silhouette),
                }
                for row in elbow.itertuples()
            ],
            'selection': selected.to_dict(),
            'clusters': [
                {
                    'cluster': int(row.cluster),
                    'size': int(row.size),
                    'share': float(row.share),
                    'mean_score': float(row.mean_score),
                    'centroid': dict(zip(items, fit.centers[int(row.cluster) - 1].tolist())),
                }
                for row in clusters.itertuples()
            ],
            'pca': {
                'components': pca_results['comps'].tolist(),
                'explained_variance_ratio': pca_results['explained_variance_ratio'].tolist(),
                'scaled': bool(self.config.get('pca.scale', False)),
            },
            'seed': self.config.get('clustering.seed'),
        }

    def write_summary(self, summary: Dict[str, Any]) -> str:
        """Write the summary as JSON into the output directory."""
        output_dir = self.config.get('output.dir')
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, 'summary.json')
        with open(path, 'w') as f:
            json.dump(summary, f, indent=2)
        logger.info(f"Saved summary to {path}")
        return path
