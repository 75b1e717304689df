import re
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

import numpy as np
from PIL import Image, PngImagePlugin

from ciq.errors import InputFormatError, InvalidParameter, OutputWriteError

PathLike = Union[str, Path]

# Magic, width, height, maxval; a single whitespace byte ends the header.
# Comments ('#') are not part of the accepted grammar.
PPM_HEADER_RE = re.compile(rb"\A(\S{1,2})\s+(\d+)\s+(\d+)\s+(\d+)\s")
PPM_MAXVAL = 255

SOFTWARE_TAG = "ciqgen - color image quantization with k-means++"
PNG_METADATA_PREFIX = "ciqgen:"


def _ensure_parent(output_path: Path):
    if not output_path.parent.exists():
        output_path.parent.mkdir(parents=True, exist_ok=True)


def load_ppm(input_path: PathLike) -> np.ndarray:
    """
    Read a binary (P6) PPM image.

    Only maxval 255 is supported and header comments are rejected.

    Args:
        input_path (str | Path): Path to the .ppm file.

    Returns:
        np.ndarray: (height, width, 3) uint8 pixel array.

    Raises:
        InputFormatError: If the file is missing, unreadable, malformed or truncated.
    """
    input_path = Path(input_path)
    try:
        data = input_path.read_bytes()
    except OSError as e:
        raise InputFormatError(f"Unable to open file {input_path}: {e}") from e

    match = PPM_HEADER_RE.match(data)
    if not match:
        raise InputFormatError(f"{input_path}: malformed PPM header (comments are not supported).")

    magic, width, height, maxval = match.group(1), int(match.group(2)), int(match.group(3)), int(match.group(4))
    if magic != b"P6":
        raise InputFormatError(f"{input_path}: unsupported PPM format {magic!r}, expected b'P6'.")
    if maxval != PPM_MAXVAL:
        raise InputFormatError(f"{input_path}: unsupported maxval {maxval}, only {PPM_MAXVAL} is supported.")
    if width <= 0 or height <= 0:
        raise InputFormatError(f"{input_path}: invalid image size {width}x{height}.")

    expected = width * height * 3
    offset = match.end()
    available = len(data) - offset
    if available < expected:
        raise InputFormatError(
            f"{input_path}: truncated pixel data, expected {expected} bytes but found {available}."
        )

    pixels = np.frombuffer(data, dtype=np.uint8, count=expected, offset=offset)
    return pixels.reshape((height, width, 3)).copy()


def save_ppm(pixels: np.ndarray, output_path: PathLike):
    """
    Write an (H, W, 3) uint8 array as a binary (P6) PPM with maxval 255.

    Raises:
        OutputWriteError: If the destination cannot be written.
    """
    output_path = Path(output_path)
    pixels = np.asarray(pixels, dtype=np.uint8)
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise InvalidParameter(f"Expected (height, width, 3) pixel data, got shape {pixels.shape}.")
    try:
        _ensure_parent(output_path)
        Image.fromarray(np.ascontiguousarray(pixels)).save(output_path, "PPM")
    except OSError as e:
        raise OutputWriteError(f"Unable to create file {output_path}: {e}") from e


def save_palette(palette: np.ndarray, output_path: PathLike):
    """
    Write a raw palette file: one R, G, B byte triple per entry, no header.

    Raises:
        OutputWriteError: If the destination cannot be written.
    """
    output_path = Path(output_path)
    palette = np.asarray(palette, dtype=np.uint8).reshape(-1, 3)
    try:
        _ensure_parent(output_path)
        output_path.write_bytes(palette.tobytes())
    except OSError as e:
        raise OutputWriteError(f"Unable to create file {output_path}: {e}") from e


def load_palette(input_path: PathLike) -> np.ndarray:
    """
    Read a raw palette file written by save_palette.

    Returns:
        np.ndarray: (K, 3) uint8 palette.
    """
    input_path = Path(input_path)
    try:
        data = input_path.read_bytes()
    except OSError as e:
        raise InputFormatError(f"Unable to open palette {input_path}: {e}") from e
    if not data or len(data) % 3:
        raise InputFormatError(f"{input_path}: palette size {len(data)} is not a positive multiple of 3 bytes.")
    return np.frombuffer(data, dtype=np.uint8).reshape(-1, 3).copy()


def save_legend_png(
    image_to_save: Image.Image,
    output_path: PathLike,
    command_line_invocation: Optional[str] = None,
    additional_metadata: Optional[Dict[str, str]] = None
):
    """
    Saves a PIL Image object as a PNG file, embedding specified metadata.
    """
    output_path = Path(output_path)

    png_info = PngImagePlugin.PngInfo()
    if command_line_invocation:
        png_info.add_text(f"{PNG_METADATA_PREFIX}command_line", command_line_invocation)
    png_info.add_text("Software", SOFTWARE_TAG)

    if additional_metadata:
        for key, value in additional_metadata.items():
            # Spaces become underscores, anything else outside [A-Za-z0-9_.-] is dropped
            key_clean = re.sub(r'\s+', '_', key)
            key_clean = re.sub(r'[^a-zA-Z0-9_.-]', '', key_clean)
            if not re.match(r'^[a-zA-Z_]', key_clean):
                key_clean = "ciqgen_" + key_clean
            # tEXt keywords are limited to 79 bytes including the prefix
            key_clean = key_clean[:70]
            png_info.add_text(f"{PNG_METADATA_PREFIX}{key_clean}", str(value))

    try:
        _ensure_parent(output_path)
        image_to_save.save(output_path, "PNG", pnginfo=png_info)
    except OSError as e:
        raise OutputWriteError(f"Error saving PNG to {output_path}: {e}") from e


def remove_outputs(paths: Iterable[PathLike]):
    """Delete files written earlier in a run that failed later on."""
    for path in paths:
        Path(path).unlink(missing_ok=True)
