"""
K-means clustering of survey responses.

This module provides a seeded k-means implementation (k-means++
initialization, Lloyd iterations, restarts) and the fit-per-k sweep that
drives the elbow chart.

Degenerate input is handled explicitly: asking for more clusters than
there are distinct response patterns raises InsufficientPointsError, and a
cluster that empties during iteration is re-seeded with the point farthest
from its current centre.
"""

import logging
from collections import OrderedDict
from copy import deepcopy
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.metrics import silhouette_score

from k10analysis.math.response_matrix import ResponseMatrix

logger = logging.getLogger(__name__)


class InsufficientPointsError(ValueError):
    """Raised when k exceeds the number of distinct records."""

    def __init__(self, k: int, n_distinct: int):
        self.k = k
        self.n_distinct = n_distinct
        super().__init__(
            f"Insufficient distinct points for {k} clusters: "
            f"data has {n_distinct} distinct records"
        )


class Cluster:
    """
    Represents a cluster in K-means clustering.
    """

    def __init__(self,
                 center: np.ndarray,
                 members: Optional[List[int]] = None,
                 id: Optional[int] = None):
        """
        Initialize a cluster with a center and optional members.

        Args:
            center: The center of the cluster
            members: Row indices of members belonging to the cluster
            id: Identifier for the cluster
        """
        self.center = np.array(center, dtype=float)
        self.members = [] if members is None else list(members)
        self.id = id

    def update_center(self, data: np.ndarray) -> None:
        """
        Move the center to the mean of the members.

        Empty clusters keep their current center.
        """
        if not self.members:
            return
        self.center = np.mean(data[self.members], axis=0)

    def __repr__(self) -> str:
        return f"Cluster(id={self.id}, members={len(self.members)})"


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """
    Calculate Euclidean distance between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Euclidean distance
    """
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


def squared_distances(data: np.ndarray, clusters: List[Cluster]) -> np.ndarray:
    """Squared distance from every point to every cluster center (n x k)."""
    centers = np.vstack([cluster.center for cluster in clusters])
    return cdist(data, centers, metric='sqeuclidean')


def count_distinct(data: np.ndarray) -> int:
    """Number of distinct rows in data."""
    if data.shape[0] == 0:
        return 0
    return len(np.unique(data, axis=0))


def init_clusters(data: np.ndarray,
                  k: int,
                  rng: np.random.Generator) -> List[Cluster]:
    """
    Choose k initial centers with k-means++.

    The first center is drawn uniformly, each further center with
    probability proportional to the squared distance to the nearest
    center already chosen.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Random generator

    Returns:
        List of k clusters with no members
    """
    n_points = data.shape[0]
    centers = [data[rng.integers(n_points)]]

    min_dists = cdist(data, centers[0][np.newaxis, :], metric='sqeuclidean').ravel()
    for _ in range(1, k):
        total = min_dists.sum()
        if total == 0:
            # Only reachable when every point already coincides with a center
            raise InsufficientPointsError(k, count_distinct(data))
        next_idx = rng.choice(n_points, p=min_dists / total)
        centers.append(data[next_idx])
        new_dists = cdist(data, data[next_idx][np.newaxis, :], metric='sqeuclidean').ravel()
        min_dists = np.minimum(min_dists, new_dists)

    return [Cluster(center, [], i) for i, center in enumerate(centers)]


def assign_points_to_clusters(data: np.ndarray, clusters: List[Cluster]) -> None:
    """
    Assign each data point to the nearest cluster.

    Ties go to the cluster that comes first in the list.
    """
    nearest = np.argmin(squared_distances(data, clusters), axis=1)
    for j, cluster in enumerate(clusters):
        cluster.members = np.flatnonzero(nearest == j).tolist()


def update_cluster_centers(data: np.ndarray, clusters: List[Cluster]) -> None:
    """Update the centers of all clusters."""
    for cluster in clusters:
        cluster.update_center(data)


def most_distal(data: np.ndarray, cluster: Cluster) -> Tuple[int, float]:
    """
    Find the member farthest from the cluster center.

    Args:
        data: Data matrix
        cluster: The cluster

    Returns:
        Tuple of (row index, squared distance), or (-1, 0.0) for an empty cluster
    """
    if not cluster.members:
        return -1, 0.0

    dists = cdist(data[cluster.members], cluster.center[np.newaxis, :],
                  metric='sqeuclidean').ravel()
    pos = int(np.argmax(dists))
    return cluster.members[pos], float(dists[pos])


def reseed_empty_clusters(data: np.ndarray, clusters: List[Cluster]) -> int:
    """
    Give every empty cluster the point farthest from its current center.

    Only clusters with at least two members donate points, so no other
    cluster is emptied in the process.

    Returns:
        Number of clusters that were re-seeded
    """
    reseeded = 0
    for empty in [cluster for cluster in clusters if not cluster.members]:
        best_idx, best_dist, donor = -1, 0.0, None
        for cluster in clusters:
            if len(cluster.members) < 2:
                continue
            idx, dist = most_distal(data, cluster)
            if dist > best_dist:
                best_idx, best_dist, donor = idx, dist, cluster

        if donor is None:
            raise InsufficientPointsError(len(clusters), count_distinct(data))

        donor.members.remove(best_idx)
        empty.members = [best_idx]
        empty.center = data[best_idx].copy()
        reseeded += 1

    return reseeded


def cluster_step(data: np.ndarray, clusters: List[Cluster]) -> List[Cluster]:
    """
    Perform one step of K-means clustering.

    Args:
        data: Data matrix
        clusters: Current clusters

    Returns:
        New clusters with updated members and centers
    """
    clusters = deepcopy(clusters)
    assign_points_to_clusters(data, clusters)
    if reseed_empty_clusters(data, clusters):
        logger.debug("Re-seeded empty clusters during k-means step")
    update_cluster_centers(data, clusters)
    return clusters


def same_membership(clusters1: List[Cluster], clusters2: List[Cluster]) -> bool:
    """True if both clusterings assign every point to the same cluster."""
    if len(clusters1) != len(clusters2):
        return False
    return all(c1.members == c2.members for c1, c2 in zip(clusters1, clusters2))


def max_center_shift(clusters1: List[Cluster], clusters2: List[Cluster]) -> float:
    """Largest distance any center moved between two clusterings."""
    return max(euclidean_distance(c1.center, c2.center)
               for c1, c2 in zip(clusters1, clusters2))


def within_sum_of_squares(data: np.ndarray, clusters: List[Cluster]) -> np.ndarray:
    """
    Sum of squared distances from members to their cluster center.

    Returns:
        Array with one value per cluster
    """
    result = np.zeros(len(clusters))
    for j, cluster in enumerate(clusters):
        if cluster.members:
            diffs = data[cluster.members] - cluster.center
            result[j] = float(np.sum(diffs * diffs))
    return result


def lloyd(data: np.ndarray,
          clusters: List[Cluster],
          max_iters: int = 100,
          tol: float = 1e-8) -> Tuple[List[Cluster], int, bool]:
    """
    Iterate assignment and center updates until membership is stable.

    Args:
        data: Data matrix
        clusters: Starting clusters (only centers are used)
        max_iters: Maximum number of iterations
        tol: Center movement below which the fit counts as converged

    Returns:
        Tuple of (clusters, iterations run, converged)
    """
    current = cluster_step(data, clusters)
    for iteration in range(2, max_iters + 1):
        new_clusters = cluster_step(data, current)
        stable = (same_membership(current, new_clusters)
                  or max_center_shift(current, new_clusters) <= tol)
        current = new_clusters
        if stable:
            return current, iteration, True
    return current, max_iters, False


class ClusterFit:
    """
    The outcome of fitting k-means with a fixed k.

    Labels run from 1 to k, with cluster 1 the largest. Arrays are
    read-only.
    """

    def __init__(self,
                 k: int,
                 labels: np.ndarray,
                 centers: np.ndarray,
                 withinss: np.ndarray,
                 n_iter: int = 0,
                 converged: bool = True):
        self.k = int(k)
        self.labels = _frozen(np.asarray(labels, dtype=int))
        self.centers = _frozen(np.asarray(centers, dtype=float))
        self.withinss = _frozen(np.asarray(withinss, dtype=float))
        self.sizes = _frozen(np.bincount(self.labels, minlength=self.k + 1)[1:])
        self.n_iter = int(n_iter)
        self.converged = bool(converged)

    @property
    def tot_withinss(self) -> float:
        """Total within-cluster sum of squares."""
        return float(np.sum(self.withinss))

    def members(self, label: int) -> np.ndarray:
        """Row positions assigned to a cluster label."""
        return np.flatnonzero(self.labels == label)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view for export."""
        return {
            'k': self.k,
            'tot_withinss': self.tot_withinss,
            'n_iter': self.n_iter,
            'converged': self.converged,
            'clusters': [
                {
                    'id': label,
                    'size': int(self.sizes[label - 1]),
                    'withinss': float(self.withinss[label - 1]),
                    'center': self.centers[label - 1].tolist(),
                }
                for label in range(1, self.k + 1)
            ]
        }

    def __repr__(self) -> str:
        return f"ClusterFit(k={self.k}, tot_withinss={self.tot_withinss:.3f})"


def _frozen(array: np.ndarray) -> np.ndarray:
    array = array.copy()
    array.setflags(write=False)
    return array


def clusters_to_fit(data: np.ndarray,
                    clusters: List[Cluster],
                    n_iter: int = 0,
                    converged: bool = True) -> ClusterFit:
    """
    Convert internal clusters to a ClusterFit.

    Clusters are relabelled by size (descending), ties broken by the
    lexicographic order of the centers.
    """
    order = sorted(
        range(len(clusters)),
        key=lambda j: (-len(clusters[j].members), tuple(clusters[j].center))
    )
    labels = np.zeros(data.shape[0], dtype=int)
    for label, j in enumerate(order, start=1):
        labels[clusters[j].members] = label

    ordered = [clusters[j] for j in order]
    return ClusterFit(
        k=len(clusters),
        labels=labels,
        centers=np.vstack([cluster.center for cluster in ordered]),
        withinss=within_sum_of_squares(data, ordered),
        n_iter=n_iter,
        converged=converged
    )


def split_start(data: np.ndarray, previous: ClusterFit) -> List[Cluster]:
    """
    Starting clusters for k+1 built from a k-cluster fit.

    Keeps the previous centers and adds the point farthest from its own
    center. Lloyd iterations from this start cannot end above the previous
    total within sum of squares.
    """
    clusters = [
        Cluster(previous.centers[label - 1], previous.members(label).tolist(), label - 1)
        for label in range(1, previous.k + 1)
    ]
    best_idx, best_dist = -1, -1.0
    for cluster in clusters:
        idx, dist = most_distal(data, cluster)
        if dist > best_dist:
            best_idx, best_dist = idx, dist

    clusters.append(Cluster(data[best_idx], [], previous.k))
    return clusters


def kmeans(data: np.ndarray,
           k: int,
           rng: Optional[np.random.Generator] = None,
           n_init: int = 10,
           max_iters: int = 100,
           tol: float = 1e-8,
           start_clusters: Optional[List[Cluster]] = None) -> ClusterFit:
    """
    Perform K-means clustering on the data.

    Args:
        data: Data matrix (rows are records)
        k: Number of clusters
        rng: Random generator for k-means++ initialization (seed 42 if omitted)
        n_init: Number of k-means++ restarts
        max_iters: Maximum number of Lloyd iterations per restart
        tol: Convergence tolerance on center movement
        start_clusters: Extra deterministic starting point, competing with
            the random restarts

    Returns:
        The fit with the lowest total within sum of squares

    Raises:
        ValueError: If k < 1 or data is empty
        InsufficientPointsError: If k exceeds the number of distinct records
    """
    data = np.asarray(data, dtype=float)
    if k < 1:
        raise ValueError(f"Number of clusters must be at least 1, got {k}")
    if data.ndim != 2 or data.shape[0] == 0:
        raise ValueError("Cannot cluster an empty data matrix")

    n_distinct = count_distinct(data)
    if k > n_distinct:
        raise InsufficientPointsError(k, n_distinct)

    if k == 1:
        cluster = Cluster(np.mean(data, axis=0), list(range(data.shape[0])), 0)
        return clusters_to_fit(data, [cluster], n_iter=1, converged=True)

    if rng is None:
        rng = np.random.default_rng(42)

    starts = [init_clusters(data, k, rng) for _ in range(max(n_init, 1))]
    if start_clusters is not None:
        starts.append(start_clusters)

    best = None
    for start in starts:
        clusters, n_iter, converged = lloyd(data, start, max_iters, tol)
        fit = clusters_to_fit(data, clusters, n_iter, converged)
        if best is None or fit.tot_withinss < best.tot_withinss:
            best = fit

    if not best.converged:
        logger.warning(f"k-means with k={k} did not converge in {max_iters} iterations")
    return best


def silhouette(data: np.ndarray, labels: np.ndarray) -> Optional[float]:
    """
    Silhouette coefficient of a labelling.

    Returns None when it is undefined (one cluster, or every record in
    its own cluster).
    """
    n_labels = len(np.unique(labels))
    if n_labels < 2 or n_labels >= data.shape[0]:
        return None
    return float(silhouette_score(data, labels, metric='euclidean'))


class ClusterFitCollection:
    """
    Ordered collection of ClusterFit results keyed by k.
    """

    def __init__(self,
                 fits: Iterable[ClusterFit],
                 silhouettes: Optional[Dict[int, Optional[float]]] = None):
        self._fits = OrderedDict((fit.k, fit) for fit in sorted(fits, key=lambda f: f.k))
        self.silhouettes = dict(silhouettes or {})

    def ks(self) -> List[int]:
        return list(self._fits.keys())

    def tot_withinss(self) -> List[float]:
        """Total within sum of squares in k order."""
        return [fit.tot_withinss for fit in self._fits.values()]

    def get(self, k: int) -> ClusterFit:
        """
        Get the fit for k.

        Raises:
            KeyError: If k was not fitted
        """
        if k not in self._fits:
            raise KeyError(f"No cluster fit for k={k}; fitted k values are {self.ks()}")
        return self._fits[k]

    def __getitem__(self, k: int) -> ClusterFit:
        return self.get(k)

    def __contains__(self, k: int) -> bool:
        return k in self._fits

    def __iter__(self):
        return iter(self._fits.values())

    def __len__(self) -> int:
        return len(self._fits)

    def __repr__(self) -> str:
        return f"ClusterFitCollection(ks={self.ks()})"


def fit_cluster_range(data: Union[ResponseMatrix, np.ndarray],
                      ks: Iterable[int] = range(1, 11),
                      seed: int = 42,
                      n_init: int = 10,
                      max_iters: int = 100,
                      tol: float = 1e-8,
                      rng: Optional[np.random.Generator] = None) -> ClusterFitCollection:
    """
    Fit k-means for each candidate k.

    One generator, created from seed unless rng is given, drives every fit
    in increasing k order, so the same seed reproduces the whole
    collection. When k-1 was fitted too, its solution seeds an extra start
    for k, which keeps the total within sum of squares non-increasing in k.

    Args:
        data: ResponseMatrix or data matrix
        ks: Candidate cluster counts
        seed: Seed for the random generator
        n_init: Number of k-means++ restarts per k
        max_iters: Maximum number of Lloyd iterations per restart
        tol: Convergence tolerance on center movement
        rng: Random generator overriding seed

    Returns:
        ClusterFitCollection keyed by k
    """
    values = data.values if isinstance(data, ResponseMatrix) else np.asarray(data, dtype=float)
    if rng is None:
        rng = np.random.default_rng(seed)

    fits = {}
    silhouettes = {}
    for k in sorted(set(ks)):
        start = split_start(values, fits[k - 1]) if (k - 1) in fits else None
        fit = kmeans(values, k, rng=rng, n_init=n_init, max_iters=max_iters,
                     tol=tol, start_clusters=start)
        fits[k] = fit
        silhouettes[k] = silhouette(values, fit.labels)
        logger.info(f"k={k}: total within sum of squares {fit.tot_withinss:.2f}")

    return ClusterFitCollection(fits.values(), silhouettes)
