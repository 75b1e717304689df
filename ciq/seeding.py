import numpy as np

from ciq.distance import squared_distance
from ciq.errors import AllocationError, InvalidParameter
from ciq.points import PointStore


def seed_centroids(store: PointStore, k: int, rng: np.random.Generator) -> np.ndarray:
    """
    Choose K initial centroids with k-means++ seeding.

    The first centroid is a uniformly random point. Every following centroid
    is drawn with probability proportional to each point's squared distance
    to the nearest centroid chosen so far, so the picks spread across the
    color space. When every point already sits on a chosen centroid the last
    point is taken, which yields a duplicate centroid.

    Args:
        store (PointStore): Points to seed from.
        k (int): Number of centroids, 1 <= k <= len(store).
        rng (np.random.Generator): The only random source consumed by a run.

    Returns:
        np.ndarray: (k, 3) float64 centroids, each equal to some point's color.

    Raises:
        InvalidParameter: If k is out of range.
        AllocationError: If the scratch distance buffer cannot be allocated.
    """
    n = len(store)
    if k < 1 or k > n:
        raise InvalidParameter(f"Number of colors must be between 1 and {n} (number of points), got {k}.")

    colors = store.colors
    first = int(rng.integers(n))
    try:
        centroids = np.empty((k, 3), dtype=np.float64)
        # Squared distance of every point to its nearest centroid so far
        nearest = squared_distance(colors, colors[first])
    except MemoryError as e:
        raise AllocationError(f"Could not allocate seeding buffers for {n} points: {e}") from e
    centroids[0] = colors[first]

    try:
        for i in range(1, k):
            cumulative = np.cumsum(nearest, dtype=np.int64)
            total = int(cumulative[-1])
            if total == 0:
                chosen = n - 1
            else:
                t = rng.random() * total
                # First point whose running sum strictly exceeds t: a t landing on a boundary
                # goes to the next point, so zero-weight points are never picked
                chosen = int(np.searchsorted(cumulative, t, side="right"))
            centroids[i] = colors[chosen]
            np.minimum(nearest, squared_distance(colors, colors[chosen]), out=nearest)
    except MemoryError as e:
        raise AllocationError(f"Ran out of memory while seeding centroid {i} of {k}: {e}") from e

    return centroids
