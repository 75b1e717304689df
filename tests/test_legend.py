# tests/test_legend.py
from PIL import Image
import numpy as np
from ciq import legend


def test_create_legend_image_returns_image(tmp_path):
    palette = [
        (255, 0, 0),
        (0, 255, 0),
        (0, 0, 255)
    ]

    legend_image = legend.create_legend_image(palette, font_size=12, swatch_size=20, padding=5)

    assert isinstance(legend_image, Image.Image)
    # a single row: fewer colors than columns
    expected_width = (20 * 3) + (5 * 4)
    expected_height = 20 + (2 * 5)
    assert legend_image.size == (expected_width, expected_height)

    # swatch interior carries the palette color
    assert legend_image.getpixel((5 + 2, 5 + 2)) == (255, 0, 0)

    outpath = tmp_path / "legend_test_output.png"
    legend_image.save(outpath)
    assert outpath.exists()


def test_large_palettes_wrap_into_rows():
    palette = np.random.default_rng(0).integers(0, 256, size=(20, 3), dtype=np.uint8)

    img = legend.create_legend_image(palette, swatch_size=10, padding=2, columns=8)

    # 20 swatches in rows of 8 -> 3 rows
    assert img.size == (8 * 10 + 9 * 2, 3 * 10 + 4 * 2)


def test_create_legend_image_with_empty_palette():
    assert legend.create_legend_image([]) is None
