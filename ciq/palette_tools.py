import numpy as np

from ciq.assign import nearest_centroid
from ciq.errors import InvalidParameter
from ciq.points import PointStore


def centroids_to_palette(centroids: np.ndarray) -> np.ndarray:
    """
    Round real-valued centroids into a byte palette.

    Args:
        centroids (np.ndarray): (K, 3) centroids.

    Returns:
        np.ndarray: (K, 3) uint8 palette, same order as the centroids.
    """
    centroids = np.asarray(centroids, dtype=np.float64)
    return np.clip(np.rint(centroids), 0, 255).astype(np.uint8)


def map_image_to_palette(image_array, palette):
    """
    Map every pixel in the image to the nearest color in a fixed palette.

    Args:
        image_array (np.ndarray): HxWx3 RGB image data
        palette (np.ndarray): Nx3 palette array

    Returns:
        Tuple[np.ndarray, np.ndarray]: Quantized image array of the same shape
        as the input, and the (H, W) palette index of every pixel.
    """
    palette = np.asarray(palette, dtype=np.uint8)
    if palette.ndim != 2 or palette.shape[1] != 3 or len(palette) == 0:
        raise InvalidParameter(f"Palette must be a non-empty array of shape [N, 3], got {palette.shape}.")

    store = PointStore(image_array)
    # Distinct colors first, then fan the result back out to every pixel
    nearest = nearest_centroid(store.unique_colors, palette)[store.inverse]

    quantized_flat = palette[nearest]
    return quantized_flat.reshape(store.shape + (3,)), nearest.reshape(store.shape)


def palette_usage(labels: np.ndarray, num_colors: int) -> np.ndarray:
    """Number of pixels labelled with each palette index."""
    return np.bincount(np.asarray(labels).reshape(-1), minlength=num_colors)
