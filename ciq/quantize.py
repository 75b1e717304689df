import numpy as np
from enum import Enum
from typing import Callable, Optional, Tuple

from ciq.assign import assign_points
from ciq.errors import InvalidParameter
from ciq.palette_tools import centroids_to_palette
from ciq.points import PointStore
from ciq.seeding import seed_centroids
from ciq.update import EPSILON, update_centroids

DEFAULT_NUM_COLORS = 256
MAX_ITERATIONS = 100


class QuantizerState(Enum):
    SEEDING = "seeding"
    ITERATING = "iterating"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = (QuantizerState.CONVERGED, QuantizerState.EXHAUSTED)


class ClusteringContext:
    """Everything one clustering run owns: points, centroids, parameters and the random source."""

    def __init__(self, store: PointStore, num_colors: int, rng: np.random.Generator,
                 epsilon: float = EPSILON, max_iterations: int = MAX_ITERATIONS):
        self.store = store
        self.num_colors = num_colors
        self.rng = rng
        self.epsilon = epsilon
        self.max_iterations = max_iterations
        self.centroids: Optional[np.ndarray] = None
        self.state = QuantizerState.SEEDING
        self.iterations = 0


class QuantizationResult:
    def __init__(self, centroids: np.ndarray, labels: np.ndarray, shape: Tuple[int, ...],
                 state: QuantizerState, iterations: int):
        self.centroids = centroids
        self.labels = labels
        self.shape = shape
        self.state = state
        self.iterations = iterations
        self.palette = centroids_to_palette(centroids)

    @property
    def converged(self) -> bool:
        return self.state is QuantizerState.CONVERGED

    def quantized_pixels(self) -> np.ndarray:
        """Re-colored image: every pixel replaced by its cluster's palette color."""
        return self.palette[self.labels].reshape(self.shape + (3,))


class KMeansQuantizer:
    """
    Reduce an image to K colors with k-means clustering and k-means++ seeding.

    The run moves through SEEDING -> ITERATING -> CONVERGED | EXHAUSTED. Each
    iteration assigns every point against the previous iteration's centroids,
    then recomputes the centroids; the loop stops once no centroid moves by
    more than `epsilon` (squared distance) or after `max_iterations`. Hitting
    the iteration cap is a normal outcome, not an error.

    Args:
        num_colors (int): K, the palette size.
        max_iterations (int): Iteration cap.
        epsilon (float): Squared-distance stability threshold.
        seed (int, optional): Seed for a fresh numpy Generator. Ignored if rng is given.
        rng (np.random.Generator, optional): Random source used by the seeder.
        on_iteration (callable, optional): Called as on_iteration(iteration, changed)
            after every iteration.
    """

    def __init__(
        self,
        num_colors: int = DEFAULT_NUM_COLORS,
        max_iterations: int = MAX_ITERATIONS,
        epsilon: float = EPSILON,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        on_iteration: Optional[Callable[[int, bool], None]] = None,
    ):
        if num_colors < 1:
            raise InvalidParameter(f"Number of colors must be at least 1, got {num_colors}.")
        if max_iterations < 1:
            raise InvalidParameter(f"max_iterations must be at least 1, got {max_iterations}.")
        if epsilon < 0:
            raise InvalidParameter(f"epsilon must be non-negative, got {epsilon}.")
        self.num_colors = num_colors
        self.max_iterations = max_iterations
        self.epsilon = epsilon
        self.seed = seed
        self.rng = rng
        self.on_iteration = on_iteration

    def create_context(self, pixels: np.ndarray) -> ClusteringContext:
        store = pixels if isinstance(pixels, PointStore) else PointStore(pixels)
        if self.num_colors > len(store):
            raise InvalidParameter(
                f"Number of colors ({self.num_colors}) exceeds the number of points ({len(store)})."
            )
        rng = self.rng if self.rng is not None else np.random.default_rng(self.seed)
        return ClusteringContext(store, self.num_colors, rng, epsilon=self.epsilon,
                                 max_iterations=self.max_iterations)

    def step(self, ctx: ClusteringContext) -> QuantizerState:
        """Advance the run by one state transition and return the new state."""
        if ctx.state is QuantizerState.SEEDING:
            ctx.centroids = seed_centroids(ctx.store, ctx.num_colors, ctx.rng)
            ctx.state = QuantizerState.ITERATING
        elif ctx.state is QuantizerState.ITERATING:
            assign_points(ctx.store, ctx.centroids)
            changed = update_centroids(ctx.store, ctx.centroids, epsilon=ctx.epsilon)
            ctx.iterations += 1
            if self.on_iteration:
                self.on_iteration(ctx.iterations, changed)
            if not changed:
                ctx.state = QuantizerState.CONVERGED
            elif ctx.iterations >= ctx.max_iterations:
                ctx.state = QuantizerState.EXHAUSTED
        return ctx.state

    def run(self, pixels: np.ndarray) -> QuantizationResult:
        """
        Cluster the pixels and return the final centroids and labels.

        Args:
            pixels (np.ndarray): (..., 3) RGB pixel data, typically (H, W, 3) uint8,
                or an existing PointStore.

        Raises:
            InvalidParameter: If K is larger than the number of points.
            AllocationError: If seeding or assignment runs out of memory.
        """
        ctx = self.create_context(pixels)
        while ctx.state not in TERMINAL_STATES:
            self.step(ctx)

        centroids = ctx.centroids.copy()
        centroids.flags.writeable = False
        return QuantizationResult(centroids, ctx.store.labels.copy(), ctx.store.shape,
                                  ctx.state, ctx.iterations)


def quantize_image(
    pixels: np.ndarray,
    num_colors: int = DEFAULT_NUM_COLORS,
    max_iterations: int = MAX_ITERATIONS,
    epsilon: float = EPSILON,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    on_iteration: Optional[Callable[[int, bool], None]] = None,
) -> Tuple[np.ndarray, np.ndarray, QuantizationResult]:
    """
    Quantize an RGB image to `num_colors` colors.

    Args:
        pixels (np.ndarray): (H, W, 3) uint8 image data.
        num_colors (int): Palette size K.
        max_iterations (int): Iteration cap for the clustering loop.
        epsilon (float): Squared-distance stability threshold.
        seed (int, optional): Seed for reproducible runs.
        rng (np.random.Generator, optional): Explicit random source; wins over seed.
        on_iteration (callable, optional): Progress callback.

    Returns:
        Tuple[np.ndarray, np.ndarray, QuantizationResult]:
            - The quantized image (same shape as the input, uint8).
            - The (K, 3) uint8 palette in centroid-index order.
            - The full clustering result.
    """
    quantizer = KMeansQuantizer(
        num_colors=num_colors,
        max_iterations=max_iterations,
        epsilon=epsilon,
        seed=seed,
        rng=rng,
        on_iteration=on_iteration,
    )
    result = quantizer.run(pixels)
    return result.quantized_pixels(), result.palette, result
