"""
Clustering Engine

Deterministic k-means over card embeddings.

Algorithm:
    1. Items are sorted by ``str(item_id)`` so input order never matters.
    2. k = round(sqrt(n)) clamped to [1, n]; boards with fewer than four
       cards get a single cluster. k shrinks to the number of distinct
       vectors when there are fewer distinct vectors than clusters.
    3. Seeding is farthest-first: the first vector, then repeatedly the
       vector farthest from every centroid chosen so far (ties go to the
       lowest index). No randomness is involved.
    4. Lloyd iterations with Euclidean distance until the assignment is
       stable or ``max_iterations`` is reached. Distance ties go to the
       lowest cluster index. A cluster left empty is re-seeded with the
       farthest outlier (point farthest from its own centroid).
    5. Cluster indices are renumbered by first appearance in sorted
       order, so the first item always lands in cluster 0.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np

from brainboard.core.exceptions import DimensionMismatch

logger = logging.getLogger(__name__)

MIN_BOARD_SIZE = 4
DEFAULT_MAX_ITERATIONS = 100


def choose_k(n: int) -> int:
    """Number of clusters for ``n`` items."""
    if n <= 0:
        return 0
    if n < MIN_BOARD_SIZE:
        return 1
    return min(max(int(round(math.sqrt(n))), 1), n)


@dataclass(frozen=True)
class ClusterResult:
    """
    Output of a clustering run.

    Attributes:
        assignments: Item id to cluster index in ``0..k-1``.
        centroids: Mean vector of each cluster, indexed by cluster.
        k: Number of (non-empty) clusters.
        iterations: Assignment passes performed.
        converged: False if the iteration cap stopped the run.
    """

    assignments: dict[Hashable, int]
    centroids: list[list[float]]
    k: int
    iterations: int
    converged: bool
    sizes: list[int] = field(default_factory=list)

    def members(self, index: int) -> list[Hashable]:
        return [item for item, label in self.assignments.items() if label == index]


def _squared_distances(data: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """(n, k) matrix of squared Euclidean distances."""
    diff = data[:, np.newaxis, :] - centroids[np.newaxis, :, :]
    return np.einsum("ijk,ijk->ij", diff, diff)


class KMeansClusterer:
    """
    Deterministic k-means.

    Usage::

        clusterer = KMeansClusterer(max_iterations=100)
        result = clusterer.fit([("a", [0, 0]), ("b", [0, 1]), ("c", [10, 10])])
        result.assignments  # {"a": 0, "b": 0, "c": 0}  (n < 4 -> k = 1)

    Args:
        max_iterations: Cap on assignment passes.
    """

    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.max_iterations = max_iterations

    def fit(
        self,
        items: Iterable[tuple[Hashable, Sequence[float]]],
        k: int | None = None,
    ) -> ClusterResult:
        """
        Partition ``items`` into clusters.

        Args:
            items: (item id, vector) pairs. Ids must be unique.
            k: Forced cluster count (clamped to [1, n]); heuristic if None.

        Raises:
            DimensionMismatch: If vectors do not all have the same length.
        """
        ordered = sorted(items, key=lambda item: str(item[0]))
        if not ordered:
            return ClusterResult(
                assignments={}, centroids=[], k=0, iterations=0, converged=True
            )

        ids = [item_id for item_id, _ in ordered]
        data = self._to_matrix(ordered)
        n = len(ids)

        k = choose_k(n) if k is None else min(max(k, 1), n)
        distinct = len(np.unique(data, axis=0))
        if distinct < k:
            logger.info(
                "Only %d distinct vectors among %d items, reducing k from %d",
                distinct,
                n,
                k,
            )
            k = distinct

        centroids = self._seed(data, k)
        labels = self._assign(data, centroids)
        labels = self._repair_empty(data, labels, centroids, k)
        centroids = self._update(data, labels, k)
        iterations = 1
        converged = False

        while iterations < self.max_iterations:
            new_labels = self._assign(data, centroids)
            new_labels = self._repair_empty(data, new_labels, centroids, k)
            iterations += 1
            if np.array_equal(new_labels, labels):
                converged = True
                break
            labels = new_labels
            centroids = self._update(data, labels, k)

        if not converged:
            logger.warning(
                "k-means stopped at iteration cap (%d) without converging",
                self.max_iterations,
            )

        return self._build_result(ids, data, labels, iterations, converged)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_matrix(ordered: list[tuple[Hashable, Sequence[float]]]) -> np.ndarray:
        first_id, first_vector = ordered[0]
        dimension = len(first_vector)
        if dimension == 0:
            raise ValueError(f"Empty embedding for {first_id}")
        for item_id, vector in ordered:
            if len(vector) != dimension:
                raise DimensionMismatch(dimension, len(vector), item_id)
        return np.asarray([list(vector) for _, vector in ordered], dtype=np.float64)

    @staticmethod
    def _seed(data: np.ndarray, k: int) -> np.ndarray:
        """Farthest-first traversal starting at the first item."""
        chosen = [0]
        nearest = _squared_distances(data, data[[0]])[:, 0]
        while len(chosen) < k:
            index = int(np.argmax(nearest))  # first maximum: lowest index wins
            chosen.append(index)
            nearest = np.minimum(nearest, _squared_distances(data, data[[index]])[:, 0])
        return data[chosen].copy()

    @staticmethod
    def _assign(data: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        # argmin returns the first minimum: ties go to the lowest cluster index
        return np.argmin(_squared_distances(data, centroids), axis=1)

    @staticmethod
    def _repair_empty(
        data: np.ndarray,
        labels: np.ndarray,
        centroids: np.ndarray,
        k: int,
    ) -> np.ndarray:
        """Move the farthest outlier into each empty cluster (mutates centroids)."""
        labels = labels.copy()
        for cluster in range(k):
            counts = np.bincount(labels, minlength=k)
            if counts[cluster] > 0:
                continue
            own = np.sum((data - centroids[labels]) ** 2, axis=1)
            # Never take the last member of another cluster
            own[counts[labels] <= 1] = -1.0
            index = int(np.argmax(own))
            if own[index] < 0:
                break
            logger.debug("Re-seeding empty cluster %d with item #%d", cluster, index)
            labels[index] = cluster
            centroids[cluster] = data[index]
        return labels

    @staticmethod
    def _update(data: np.ndarray, labels: np.ndarray, k: int) -> np.ndarray:
        centroids = np.zeros((k, data.shape[1]), dtype=np.float64)
        for cluster in range(k):
            members = data[labels == cluster]
            if len(members):
                centroids[cluster] = members.mean(axis=0)
        return centroids

    def _build_result(
        self,
        ids: list[Hashable],
        data: np.ndarray,
        labels: np.ndarray,
        iterations: int,
        converged: bool,
    ) -> ClusterResult:
        """Renumber clusters by first appearance and drop empty ones."""
        renumber: dict[int, int] = {}
        for label in labels.tolist():
            if label not in renumber:
                renumber[label] = len(renumber)

        final = np.asarray([renumber[label] for label in labels.tolist()])
        k = len(renumber)
        centroids = self._update(data, final, k)
        sizes = np.bincount(final, minlength=k).tolist()

        return ClusterResult(
            assignments={item_id: int(label) for item_id, label in zip(ids, final)},
            centroids=centroids.tolist(),
            k=k,
            iterations=iterations,
            converged=converged,
            sizes=sizes,
        )
