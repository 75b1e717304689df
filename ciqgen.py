import sys
import traceback
from pathlib import Path
from typing import Dict, List, Optional

import click
import numpy as np
import rich.traceback
import typer

from ciq import file_utils, legend, palette_tools, quantize
from ciq.errors import CIQError, InvalidParameter

DEFAULT_PALETTE_NAME = "palette.pal"

# Named palette sizes; an explicit K on the command line always wins
PRESETS: Dict[str, int] = {
    "mono": 2,
    "retro": 16,
    "web": 64,
    "gif": 256,
}


def resolve_num_colors(num_colors: Optional[int], preset: Optional[str]) -> int:
    if num_colors is not None:
        return num_colors
    if preset is not None:
        if preset not in PRESETS:
            raise InvalidParameter(
                f"Unknown preset '{preset}'. Choose one of: {', '.join(sorted(PRESETS))}."
            )
        return PRESETS[preset]
    return quantize.DEFAULT_NUM_COLORS


def ciq_cli(
    input_path: Path = typer.Argument(
        ..., help="Input image, binary PPM (P6, maxval 255).", metavar="INPUT",
    ),
    output_path: Path = typer.Argument(
        ..., help="Output image path (binary PPM).", metavar="OUTPUT",
    ),
    num_colors: Optional[int] = typer.Argument(
        None, help=f"Number of palette colors K. Default: {quantize.DEFAULT_NUM_COLORS}.", metavar="K",
    ),
    palette_path: Optional[Path] = typer.Option(
        None, "--palette", help=f"Raw palette output file. Default: {DEFAULT_PALETTE_NAME} next to OUTPUT."
    ),
    preset: Optional[str] = typer.Option(
        None, "--preset", help=f"Named palette size ({', '.join(f'{k}={v}' for k, v in PRESETS.items())}). Ignored if K is given."
    ),
    seed: Optional[int] = typer.Option(
        None, "--seed", envvar="CIQGEN_SEED", help="Random seed for reproducible palettes."
    ),
    max_iterations: int = typer.Option(
        quantize.MAX_ITERATIONS, "--max-iterations", help=f"Iteration cap. Default: {quantize.MAX_ITERATIONS}."
    ),
    epsilon: float = typer.Option(
        quantize.EPSILON, "--epsilon", help=f"Squared-distance threshold for a stable centroid. Default: {quantize.EPSILON}."
    ),
    palette_from: Optional[Path] = typer.Option(
        None, "--palette-from", help="Skip clustering and map the image onto an existing raw palette file."
    ),
    legend_path: Optional[Path] = typer.Option(
        None, "--legend", help="Also write a PNG palette legend to this path."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report errors."),
):
    """
    Quantizes a PPM image to K colors with k-means++ clustering and writes the
    re-colored image plus its raw palette.
    """
    command_line_str = " ".join(sys.argv)

    def say(message: str, **kwargs):
        if not quiet:
            typer.secho(message, **kwargs)

    def report_iteration(iteration: int, changed: bool):
        if not quiet:
            typer.echo(f"\rIteration: {iteration}", nl=False)

    if palette_path is None:
        palette_path = output_path.parent / DEFAULT_PALETTE_NAME

    say("Color Image Quantization using K-Means++")
    written: List[Path] = []
    try:
        k = resolve_num_colors(num_colors, preset)
        pixels = file_utils.load_ppm(input_path)
        height, width = pixels.shape[:2]
        say(f"Loaded {input_path} ({width}x{height}, {width * height} points).")

        if palette_from is not None:
            fixed_palette = file_utils.load_palette(palette_from)
            say(f"Mapping onto {len(fixed_palette)} colors from '{palette_from}'.")
            quantized_pixels, labels = palette_tools.map_image_to_palette(pixels, fixed_palette)
            final_palette = fixed_palette
        else:
            say(f"Quantizing image {input_path} with K={k}" + (f" (seed {seed})." if seed is not None else "."))
            quantized_pixels, final_palette, result = quantize.quantize_image(
                pixels,
                num_colors=k,
                max_iterations=max_iterations,
                epsilon=epsilon,
                seed=seed,
                on_iteration=report_iteration,
            )
            labels = result.labels
            if not quiet:
                typer.echo("")
            if result.converged:
                say(f"Clusters stable after {result.iterations} iteration(s).", fg=typer.colors.GREEN)
            else:
                say(f"Stopped at the {result.iterations}-iteration cap before the clusters were stable.",
                    fg=typer.colors.YELLOW)

        unused = int(np.count_nonzero(palette_tools.palette_usage(labels, len(final_palette)) == 0))
        if unused:
            say(f"Note: {unused} palette entries are not used by any pixel.", fg=typer.colors.BLUE)

        file_utils.save_ppm(quantized_pixels, output_path)
        written.append(output_path)
        file_utils.save_palette(final_palette, palette_path)
        written.append(palette_path)

        if legend_path is not None:
            legend_image = legend.create_legend_image(final_palette)
            file_utils.save_legend_png(
                legend_image,
                legend_path,
                command_line_invocation=command_line_str,
                additional_metadata={
                    "SourceImage": str(input_path),
                    "PaletteColors": str(len(final_palette)),
                    "Seed": str(seed) if seed is not None else "none",
                },
            )
            written.append(legend_path)
    except CIQError as e:
        file_utils.remove_outputs(written)
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        typer.secho("Failed to quantize image", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        file_utils.remove_outputs(written)
        typer.secho(f"Unexpected error while quantizing {input_path}: {e}", fg=typer.colors.RED, err=True)
        traceback.print_exc()
        raise typer.Exit(code=1)

    say(f"Image quantized successfully and saved into {output_path}", fg=typer.colors.GREEN)
    say(f"Palette ({len(final_palette)} colors) saved into {palette_path}")
    if legend_path is not None:
        say(f"Palette legend saved into {legend_path}")


def main():
    rich.traceback.install(show_locals=False, suppress=[typer])
    app = typer.Typer(add_completion=False)
    app.command()(ciq_cli)
    command = typer.main.get_command(app)
    # Run without click's standalone handling so usage errors exit 1 like every other failure
    try:
        exit_code = command(standalone_mode=False)
    except click.exceptions.ClickException as e:
        typer.secho(f"Error: {e.format_message()}", fg=typer.colors.RED, err=True)
        typer.secho("Usage: ciqgen INPUT OUTPUT [K] [OPTIONS]. Try --help.", err=True)
        sys.exit(1)
    except click.exceptions.Abort:
        typer.secho("Aborted.", fg=typer.colors.RED, err=True)
        sys.exit(1)
    sys.exit(exit_code if isinstance(exit_code, int) else 0)


if __name__ == "__main__":
    main()
