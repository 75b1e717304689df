# tests/test_file_utils.py
import numpy as np
import pytest
from PIL import Image
from ciq import file_utils
from ciq.errors import InputFormatError, OutputWriteError


def write_ppm(path, width, height, pixel_bytes, header=None):
    if header is None:
        header = f"P6\n{width} {height}\n255\n".encode()
    path.write_bytes(header + pixel_bytes)
    return path


def test_load_ppm_reads_row_major_rgb(tmp_path):
    data = bytes([255, 0, 0, 0, 255, 0, 0, 0, 255, 1, 2, 3, 4, 5, 6, 7, 8, 9])
    path = write_ppm(tmp_path / "in.ppm", 3, 2, data)

    pixels = file_utils.load_ppm(path)

    assert pixels.shape == (2, 3, 3)
    assert pixels.dtype == np.uint8
    assert pixels[0, 1].tolist() == [0, 255, 0]
    assert pixels[1, 2].tolist() == [7, 8, 9]


def test_save_ppm_writes_plain_header_and_pixels(tmp_path):
    pixels = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)
    path = tmp_path / "out.ppm"

    file_utils.save_ppm(pixels, path)

    raw = path.read_bytes()
    assert raw.startswith(b"P6\n3 2\n255\n")
    assert raw[len(b"P6\n3 2\n255\n"):] == pixels.tobytes()
    np.testing.assert_array_equal(file_utils.load_ppm(path), pixels)


@pytest.mark.parametrize("header", [
    b"P6\n# made by hand\n1 1\n255\n",   # comments unsupported
    b"P6\n1 1\n65535\n",                  # 16-bit samples
    b"P3\n1 1\n255\n",                    # ASCII variant
    b"P6\n1\n",                           # incomplete header
    b"P6\n0 1\n255\n",                    # empty image
])
def test_load_ppm_rejects_bad_headers(tmp_path, header):
    path = write_ppm(tmp_path / "bad.ppm", 1, 1, b"\x00\x00\x00\x00\x00\x00", header=header)
    with pytest.raises(InputFormatError):
        file_utils.load_ppm(path)


def test_load_ppm_rejects_truncated_data(tmp_path):
    path = write_ppm(tmp_path / "short.ppm", 2, 2, bytes(11))
    with pytest.raises(InputFormatError, match="truncated"):
        file_utils.load_ppm(path)


def test_load_ppm_missing_file(tmp_path):
    with pytest.raises(InputFormatError):
        file_utils.load_ppm(tmp_path / "nope.ppm")


def test_palette_file_is_raw_triples_in_order(tmp_path):
    palette = np.array([[1, 2, 3], [255, 128, 0], [9, 9, 9]], dtype=np.uint8)
    path = tmp_path / "palette.pal"

    file_utils.save_palette(palette, path)

    assert path.read_bytes() == bytes([1, 2, 3, 255, 128, 0, 9, 9, 9])
    np.testing.assert_array_equal(file_utils.load_palette(path), palette)


def test_load_palette_rejects_partial_triples(tmp_path):
    path = tmp_path / "broken.pal"
    path.write_bytes(b"\x01\x02\x03\x04")
    with pytest.raises(InputFormatError):
        file_utils.load_palette(path)


def test_unwritable_destination_raises_output_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    with pytest.raises(OutputWriteError):
        file_utils.save_ppm(np.zeros((1, 1, 3), dtype=np.uint8), blocker / "out.ppm")
    with pytest.raises(OutputWriteError):
        file_utils.save_palette(np.zeros((1, 3), dtype=np.uint8), blocker / "palette.pal")


def test_save_ppm_creates_missing_directories(tmp_path):
    path = tmp_path / "nested" / "dir" / "out.ppm"
    file_utils.save_ppm(np.zeros((1, 2, 3), dtype=np.uint8), path)
    assert path.exists()


def test_save_legend_png_creates_file_with_metadata(tmp_path):
    img = Image.new("RGB", (10, 10), color=(100, 150, 200))
    output_file = tmp_path / "legend.png"
    cmd_line = "ciqgen in.ppm out.ppm 16"
    metadata = {"Source Image": "in.ppm", "Palette_Colors": "16"}

    file_utils.save_legend_png(img, output_file, command_line_invocation=cmd_line, additional_metadata=metadata)

    assert output_file.exists()
    with Image.open(output_file) as im:
        pnginfo = im.info
        assert pnginfo["ciqgen:command_line"] == cmd_line
        assert pnginfo["ciqgen:Source_Image"] == "in.ppm"
        assert "ciqgen:Palette_Colors" in pnginfo
        assert pnginfo["Software"] == file_utils.SOFTWARE_TAG


def test_remove_outputs_ignores_missing_files(tmp_path):
    present = tmp_path / "a.ppm"
    present.write_bytes(b"x")
    file_utils.remove_outputs([present, tmp_path / "never_written.pal"])
    assert not present.exists()
