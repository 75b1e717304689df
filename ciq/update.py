import numpy as np

from ciq.distance import squared_distance
from ciq.errors import InvalidParameter
from ciq.points import PointStore

EPSILON = 8  # squared-distance threshold below which a centroid counts as stable


def cluster_sums(store: PointStore, k: int):
    """
    Per-cluster channel sums and point counts in one pass over the labels.

    Returns:
        Tuple[np.ndarray, np.ndarray]: (k, 3) float64 sums and (k,) int64 counts.
    """
    labels = store.labels
    if len(labels) and (labels.min() < 0 or labels.max() >= k):
        raise InvalidParameter(f"Every point must carry a label in [0, {k}) before centroids can be updated.")

    colors = store.colors
    sums = np.empty((k, 3), dtype=np.float64)
    for channel in range(3):
        sums[:, channel] = np.bincount(labels, weights=colors[:, channel], minlength=k)
    counts = np.bincount(labels, minlength=k).astype(np.int64)
    return sums, counts


def update_centroids(store: PointStore, centroids: np.ndarray, epsilon: float = EPSILON) -> bool:
    """
    Move each centroid to the mean of the points assigned to it.

    A cluster that ended up with no points keeps its previous centroid. The
    centroid array is overwritten in place.

    Args:
        store (PointStore): Labelled points.
        centroids (np.ndarray): (k, 3) float64 centroids, updated in place.
        epsilon (float): A centroid whose squared displacement exceeds this
            value counts as changed.

    Returns:
        bool: True if any centroid changed, False once the clustering is stable.
    """
    k = len(centroids)
    sums, counts = cluster_sums(store, k)

    new_centroids = centroids.copy()
    occupied = counts > 0
    new_centroids[occupied] = sums[occupied] / counts[occupied, None]

    moved = squared_distance(centroids, new_centroids)
    changed = bool(np.any(moved > epsilon))

    centroids[:] = new_centroids
    return changed
