import math
import os

from PIL import Image, ImageDraw, ImageFont


def _load_font(font_path, font_size):
    try:
        if font_path and os.path.isfile(font_path):
            return ImageFont.truetype(font_path, font_size)
    except IOError:
        pass  # fall through to the default font
    return ImageFont.load_default(size=font_size)


def _text_color_for(fill_color):
    # Dark text on light swatches, light text on dark ones
    r, g, b = fill_color
    luminance = (r * 299 + g * 587 + b * 114) / 1000
    return (0, 0, 0) if luminance >= 128 else (255, 255, 255)


def create_legend_image(palette, font_path=None, font_size=12, swatch_size=32, padding=4, columns=16):
    """
    Creates a palette legend PIL Image: one numbered swatch per palette entry,
    laid out in rows of `columns` swatches in palette-index order.

    Args:
        palette (list or np.ndarray): Color palette, each item an RGB tuple/list or ndarray.
        font_path (str, optional): Path to a TTF font file.
        font_size (int): Font size for the index numbers.
        swatch_size (int): Width/height of each color swatch.
        padding (int): Space around elements and between swatches.
        columns (int): Maximum number of swatches per row.

    Returns:
        PIL.Image.Image: The generated legend image, or None for an empty palette.
    """
    num_colors = len(palette)
    if num_colors == 0:
        return None

    columns = max(1, min(columns, num_colors))
    rows = math.ceil(num_colors / columns)
    width = (swatch_size * columns) + (padding * (columns + 1))
    height = (swatch_size * rows) + (padding * (rows + 1))

    image = Image.new("RGB", (width, height), color=(255, 255, 255))
    draw = ImageDraw.Draw(image)
    font = _load_font(font_path, font_size)

    for idx, color_data in enumerate(palette):
        row, col = divmod(idx, columns)
        x0 = padding + col * (swatch_size + padding)
        y0 = padding + row * (swatch_size + padding)

        if hasattr(color_data, 'tolist'):  # numpy rows
            color_data = color_data.tolist()
        fill_color = tuple(int(c) for c in color_data)

        draw.rectangle([x0, y0, x0 + swatch_size, y0 + swatch_size], fill=fill_color, outline=(0, 0, 0))

        text_content = str(idx)
        bbox = draw.textbbox((0, 0), text_content, font=font)
        text_w = bbox[2] - bbox[0]
        text_h = bbox[3] - bbox[1]
        text_x = x0 + (swatch_size - text_w) / 2.0 - bbox[0]
        text_y = y0 + (swatch_size - text_h) / 2.0 - bbox[1]
        draw.text((text_x, text_y), text_content, fill=_text_color_for(fill_color), font=font)

    return image
