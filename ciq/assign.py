import numpy as np
from typing import Optional

from ciq.distance import pairwise_squared_distances
from ciq.errors import AllocationError, InvalidParameter
from ciq.points import PointStore

# Upper bound on distance-matrix entries held in memory at once
ASSIGN_BATCH_ELEMENTS = 1 << 22


def nearest_centroid(colors: np.ndarray, centroids: np.ndarray, batch_size: Optional[int] = None) -> np.ndarray:
    """
    Index of the nearest centroid for every color, lowest index on ties.

    Args:
        colors (np.ndarray): (n, 3) colors.
        centroids (np.ndarray): (k, 3) centroids.
        batch_size (int, optional): Colors per batch. Default keeps each
            distance matrix under ASSIGN_BATCH_ELEMENTS entries.

    Returns:
        np.ndarray: (n,) int32 centroid indices.
    """
    n = len(colors)
    k = len(centroids)
    if k == 0:
        raise InvalidParameter("Cannot assign points without centroids.")
    if batch_size is None:
        batch_size = max(1, ASSIGN_BATCH_ELEMENTS // k)

    try:
        nearest = np.empty(n, dtype=np.int32)
        for start in range(0, n, batch_size):
            end = min(start + batch_size, n)
            dists = pairwise_squared_distances(colors[start:end], centroids)
            # argmin returns the first minimum, which is the lowest centroid index
            nearest[start:end] = np.argmin(dists, axis=1)
    except MemoryError as e:
        raise AllocationError(f"Could not allocate assignment buffers (batch of {batch_size} x {k}): {e}") from e
    return nearest


def assign_points(store: PointStore, centroids: np.ndarray, batch_size: Optional[int] = None) -> np.ndarray:
    """
    Label every point with the index of its nearest centroid.

    Distances are computed once per distinct color and scattered back to the
    points, so every pixel of a given color gets the same label it would get
    from a per-pixel scan. Centroids are read, never modified.

    Returns:
        np.ndarray: The store's labels array (updated in place).
    """
    unique_labels = nearest_centroid(store.unique_colors, centroids, batch_size=batch_size)
    store.labels[:] = unique_labels[store.inverse]
    return store.labels
