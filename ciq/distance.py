import numpy as np


def _working_dtype(a: np.ndarray, b: np.ndarray):
    # Integer colors stay exact in int64; anything real-valued goes to float64
    if a.dtype.kind in "biu" and b.dtype.kind in "biu":
        return np.int64
    return np.float64


def squared_distance(a, b):
    """
    Squared Euclidean distance between RGB triples.

    Both arguments may be single triples or arrays of triples that broadcast
    against each other (channels on the last axis). No square root is taken,
    only the ordering of distances matters to the clustering.

    Args:
        a: RGB triple or array of shape (..., 3).
        b: RGB triple or array of shape (..., 3).

    Returns:
        np.int64 / np.float64 scalar, or an array of shape (...).
    """
    a = np.asarray(a)
    b = np.asarray(b)
    dtype = _working_dtype(a, b)
    diff = a.astype(dtype, copy=False) - b.astype(dtype, copy=False)
    return np.sum(diff * diff, axis=-1)


def pairwise_squared_distances(colors: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Distance from every color to every centroid.

    Args:
        colors (np.ndarray): (n, 3) colors.
        centroids (np.ndarray): (k, 3) centroids.

    Returns:
        np.ndarray: (n, k) float64 matrix of squared distances.
    """
    diff = colors[:, None, :].astype(np.float64) - centroids[None, :, :].astype(np.float64)
    return np.einsum("nkc,nkc->nk", diff, diff)
