"""Command-line driver: downsample a P6 panorama to WxH and write output.ppm."""
import argparse
import logging
import sys
from typing import List, Optional, Tuple

from .errors import ArgumentError, PanoramaError
from .modules.kernel_resampler import EquirectangularDownsampler
from .modules.ppm_codec import ROUNDING_MODES, EquirectangularImage, decode, encode
from .modules.preview import write_png
from .nodes import EquirectangularDownsample


logger = logging.getLogger(__name__)

OUTPUT_NAME = "output.ppm"

# Options taken from the node's input table; the target size is positional.
_POSITIONAL_INPUTS = {"image", "output_width", "output_height"}


def parse_size(token: str) -> Tuple[int, int]:
    """Parse a 'WxH' token into (width, height)."""
    width, sep, height = token.partition("x")
    if not sep or not width.isdigit() or not height.isdigit():
        raise ArgumentError(f"malformed size {token!r}, expected WxH such as 512x256")
    if int(width) == 0 or int(height) == 0:
        raise ArgumentError(f"size {token!r} must be positive")
    return int(width), int(height)


def _make_argparser() -> argparse.ArgumentParser:
    formatter_class = lambda **k: argparse.ArgumentDefaultsHelpFormatter(max_help_position=40, **k)
    parser = argparse.ArgumentParser(prog="latlong-downsample", description=__doc__,
                                     formatter_class=formatter_class)
    parser.add_argument("size", metavar="WxH", help="Target width and height, e.g. 512x256.")
    parser.add_argument("input", metavar="input.ppm", help="Binary PPM (P6) equirectangular panorama.")

    for name, (kind, opts) in EquirectangularDownsample.INPUT_TYPES()["optional"].items():
        if name in _POSITIONAL_INPUTS:
            continue
        opt = f'--{name.replace("_", "-")}'
        if isinstance(kind, list):
            parser.add_argument(opt, dest=name, choices=kind, default=opts["default"], help=opts["tooltip"])
        else:
            parser.add_argument(opt, dest=name, type=int, default=opts["default"],
                                metavar="N", help=opts["tooltip"])

    parser.add_argument("--rounding", choices=ROUNDING_MODES, default="round",
                        help="Byte quantization of the output: round to nearest or truncate.")
    parser.add_argument("--png", metavar="PATH", default=None,
                        help="Also write an 8-bit PNG preview of the result.")
    parser.add_argument("--png-max-width", metavar="N", type=int, default=-1,
                        help="Shrink the PNG preview to at most N pixels (-1 keeps full size).")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (repeatable).")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors.")
    return parser


def _configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s: %(message)s")


def run(args: argparse.Namespace) -> None:
    out_width, out_height = parse_size(args.size)

    image = decode(args.input)
    EquirectangularDownsampler.check_dimensions(image.width, image.height, out_width, out_height)

    output = EquirectangularImage.new(OUTPUT_NAME, out_width, out_height)
    output.pixels[...] = EquirectangularDownsampler.downsample(
        image.pixels,
        out_width,
        out_height,
        method=args.method,
        backend=args.backend,
        max_samples=args.max_samples,
    )
    encode(output, rounding=args.rounding)
    if args.png:
        write_png(output, args.png, args.png_max_width)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _make_argparser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)
    try:
        run(args)
    except PanoramaError as exc:
        logger.error("%s", exc)
        return exc.exit_status
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
