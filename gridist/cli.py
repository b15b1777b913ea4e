import argparse
import sys
from dataclasses import fields
from pathlib import Path
from typing import Iterable

from .cropper import crop_file
from .errors import GridistError
from .layout import DEFAULT_CONFIG, GridConfig
from .logging_config import setup_logging

GEOMETRY_HELP = {
    "container_width": "Width of the container that holds all cards",
    "cut_width": "Width of each cut",
    "cut_height": "Height of each cut",
    "padding_top": "Top padding inside each card",
    "padding_horizontal": "Horizontal padding inside each card",
    "padding_bottom": "Bottom padding inside each card",
    "margin_bottom": "Margin below each card row",
}


def parse_arguments(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Split an image or animated GIF into six tiles laid out as a "
            "3-row, 2-column card grid."
        )
    )
    parser.add_argument(
        "input_file",
        type=Path,
        help="Path to the image or GIF to split.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for the tiles (defaults to the current directory).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads per worker pool (default: CPU count + 4, at most 32).",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file.",
    )
    geometry = parser.add_argument_group("grid geometry")
    for field in fields(GridConfig):
        default = getattr(DEFAULT_CONFIG, field.name)
        geometry.add_argument(
            "--" + field.name.replace("_", "-"),
            type=int,
            default=default,
            help=f"{GEOMETRY_HELP[field.name]} in pixels (default: {default}).",
        )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> GridConfig:
    return GridConfig(**{field.name: getattr(args, field.name) for field in fields(GridConfig)})


def main(argv: Iterable[str]) -> int:
    args = parse_arguments(argv)
    setup_logging("DEBUG" if args.debug else "INFO", args.log_file)
    try:
        if args.workers is not None and args.workers <= 0:
            raise ValueError("--workers must be a positive integer.")
        config = config_from_args(args)
        outputs = crop_file(args.input_file, config, args.output_dir, args.workers)
        for output in outputs:
            print(output)
        print(f"Created {len(outputs)} tiles from {args.input_file}")
        return 0
    except GridistError as grid_err:
        print(f"Error: {grid_err}", file=sys.stderr)
    except ValueError as value_err:
        print(f"Error: {value_err}", file=sys.stderr)
    except Exception as unexpected_err:  # noqa: BLE001
        print(f"Unexpected error: {unexpected_err}", file=sys.stderr)
    return 1


def run() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
