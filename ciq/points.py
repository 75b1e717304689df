import numpy as np
from typing import NamedTuple, Optional, Tuple

from ciq.errors import AllocationError, InputFormatError

UNASSIGNED = -1


class Point(NamedTuple):
    r: int
    g: int
    b: int
    cluster: int


class PointStore:
    """
    Fixed set of pixel colors, each carrying a mutable cluster label.

    Colors are held in a read-only (N, 3) uint8 array and never change after
    construction. Labels live in a separate (N,) int32 array that starts out
    as UNASSIGNED and is rewritten by every assignment pass.

    Clustering work is done on the distinct colors of the image: `unique_colors`
    and `inverse` (point -> unique color row) are built once, lazily, from
    packed 24-bit color keys.
    """

    def __init__(self, pixels: np.ndarray):
        pixels = np.asarray(pixels)
        if pixels.ndim < 2 or pixels.shape[-1] != 3:
            raise InputFormatError(f"Expected RGB pixel data with 3 channels, got shape {pixels.shape}.")
        if pixels.dtype != np.uint8:
            if pixels.size and (pixels.min() < 0 or pixels.max() > 255):
                raise InputFormatError("Pixel values must lie in [0, 255].")
        try:
            self.colors = np.ascontiguousarray(pixels.reshape(-1, 3), dtype=np.uint8).copy()
            self.labels = np.full(len(self.colors), UNASSIGNED, dtype=np.int32)
        except MemoryError as e:
            raise AllocationError(f"Could not allocate storage for {pixels.size // 3} points: {e}") from e
        self.colors.flags.writeable = False
        self.shape: Tuple[int, ...] = tuple(pixels.shape[:-1])

        self._unique: Optional[np.ndarray] = None
        self._inverse: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.colors)

    def point(self, index: int) -> Point:
        r, g, b = (int(c) for c in self.colors[index])
        return Point(r, g, b, int(self.labels[index]))

    def _build_unique_index(self):
        keys = (
            (self.colors[:, 0].astype(np.uint32) << 16)
            | (self.colors[:, 1].astype(np.uint32) << 8)
            | self.colors[:, 2].astype(np.uint32)
        )
        unique_keys, inverse = np.unique(keys, return_inverse=True)
        unique = np.empty((len(unique_keys), 3), dtype=np.uint8)
        unique[:, 0] = (unique_keys >> 16) & 0xFF
        unique[:, 1] = (unique_keys >> 8) & 0xFF
        unique[:, 2] = unique_keys & 0xFF
        self._unique = unique
        self._inverse = inverse.reshape(-1)

    @property
    def unique_colors(self) -> np.ndarray:
        if self._unique is None:
            self._build_unique_index()
        return self._unique

    @property
    def inverse(self) -> np.ndarray:
        if self._inverse is None:
            self._build_unique_index()
        return self._inverse

    def is_assigned(self) -> bool:
        return bool(len(self.labels)) and bool(np.all(self.labels != UNASSIGNED))
