"""
tonecurve Command Line Interface

Usage:
    tonecurve <command> [options]

Commands:
    apply       Apply a tone curve to an image file
    lut         Print the lookup table of a curve
    presets     List built-in presets
    status      Show acceleration status
    version     Show version information

Examples:
    tonecurve apply photo.png out.png --preset s-curve
    tonecurve apply photo.tif out.tif -p 0.25,0.15 -p 0.75,0.85 --channel red
    tonecurve apply photo.png out.png --preset film-emulation --gpu
    tonecurve lut --preset high-contrast --size 16
    tonecurve presets --channel blue
"""

import sys
import json
import logging
import argparse

from tonecurve import __version__


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='tonecurve',
        description='Tone Curve Processing Engine',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'tonecurve {__version__}',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging',
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Apply command
    apply_parser = subparsers.add_parser(
        'apply',
        help='Apply a tone curve to an image file',
    )
    apply_parser.add_argument('input', help='Input image file')
    apply_parser.add_argument('output', help='Output image file')
    _add_curve_arguments(apply_parser)
    apply_parser.add_argument(
        '-c', '--config',
        help='Engine configuration file (JSON)',
    )
    apply_parser.add_argument(
        '-t', '--threads',
        type=int,
        default=None,
        help='Worker threads (default: all cores)',
    )
    apply_parser.add_argument(
        '--serial',
        action='store_true',
        help='Process on a single thread',
    )
    apply_parser.add_argument(
        '--gpu',
        action='store_true',
        help='Use the OpenCL path when available',
    )
    apply_parser.add_argument(
        '--lut-size',
        type=int,
        default=None,
        help='LUT resolution (default: by bit depth)',
    )
    apply_parser.add_argument(
        '--optimize',
        action='store_true',
        help='Refine the curve from image statistics',
    )
    apply_parser.add_argument(
        '--contrast',
        type=float,
        default=0.0,
        help='Optimizer contrast boost, 0..1 (default: 0)',
    )

    # LUT command
    lut_parser = subparsers.add_parser(
        'lut',
        help='Print the lookup table of a curve',
    )
    _add_curve_arguments(lut_parser)
    lut_parser.add_argument(
        '-s', '--size',
        type=int,
        default=256,
        help='Number of LUT entries (default: 256)',
    )
    lut_parser.add_argument(
        '--json',
        action='store_true',
        help='Print the curve and table as JSON',
    )

    # Presets command
    presets_parser = subparsers.add_parser(
        'presets',
        help='List built-in presets',
    )
    presets_parser.add_argument(
        '--channel',
        default='rgb',
        help='Channel to list presets for (default: rgb)',
    )

    subparsers.add_parser('status', help='Show acceleration status')
    subparsers.add_parser('version', help='Show version information')

    # Parse arguments
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.command is None:
        parser.print_help()
        return 0

    # Dispatch to appropriate command
    try:
        if args.command == 'apply':
            return run_apply(args)
        elif args.command == 'lut':
            return run_lut(args)
        elif args.command == 'presets':
            return run_presets(args)
        elif args.command == 'status':
            return run_status(args)
        elif args.command == 'version':
            print(f"tonecurve {__version__}")
            return 0
        else:
            parser.print_help()
            return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


def _add_curve_arguments(parser):
    """Arguments shared by commands that take a curve."""
    parser.add_argument(
        '--preset',
        help='Built-in preset name (see "tonecurve presets")',
    )
    parser.add_argument(
        '-p', '--point',
        action='append',
        dest='points',
        metavar='X,Y',
        help='Control point (can be used multiple times)',
    )
    parser.add_argument(
        '--host-range',
        action='store_true',
        help='Points are given in [-100, 100] instead of [0, 1]',
    )
    parser.add_argument(
        '--variant',
        default=None,
        help='linear, cubic_spline, bezier or parametric',
    )
    parser.add_argument(
        '--channel',
        default='rgb',
        help='rgb, red, green, blue, luminance, lab_l, lab_a or lab_b (default: rgb)',
    )
    parser.add_argument(
        '--gamma',
        type=float,
        default=None,
        help='Gamma for the parametric variant',
    )


def parse_point(text):
    """Parse "x,y" into a float pair."""
    try:
        x, y = text.split(',')
        return float(x), float(y)
    except ValueError:
        raise ValueError(f"Invalid point '{text}', expected X,Y")


def spec_from_args(args):
    """Build a CurveSpec from --preset / --point arguments."""
    from tonecurve.core.types import Channel, CurveSpec, CurveVariant
    from tonecurve.curves.presets import from_host_range, get_preset

    channel = Channel.parse(args.channel)

    if args.points:
        points = [parse_point(p) for p in args.points]
        if args.host_range:
            points = from_host_range(points)
        variant = CurveVariant.CUBIC_SPLINE
    elif args.preset:
        preset = get_preset(args.preset, channel)
        points = preset.points
        variant = preset.variant
    else:
        raise ValueError("Specify a curve with --preset or --point")

    if args.variant:
        variant = CurveVariant.parse(args.variant)
    return CurveSpec(points, variant=variant, channel=channel, gamma=args.gamma)


def _to_rgb(image):
    import cv2

    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return image


def _to_bgr(image):
    import cv2

    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    return image


def run_apply(args):
    """Run the apply command."""
    import cv2

    from tonecurve.core.buffer import ImageBuffer
    from tonecurve.core.config import EngineConfig
    from tonecurve.core.types import Acceleration
    from tonecurve.engine import CurveEngine
    from tonecurve.optimizer import OptimizerIntent

    config = EngineConfig.load(args.config) if args.config else EngineConfig()
    config = config.with_env()
    if args.optimize:
        config.use_optimizer = True

    spec = spec_from_args(args)

    image = cv2.imread(args.input, cv2.IMREAD_UNCHANGED)
    if image is None:
        print(f"Error: could not read image {args.input}", file=sys.stderr)
        return 1
    pixels = _to_rgb(image)
    buffer = ImageBuffer.from_array(pixels)

    with CurveEngine(config) as engine:
        options = engine.default_options()
        if args.threads is not None:
            options.thread_count = args.threads
        if args.lut_size is not None:
            options.lut_size = args.lut_size
        if args.serial:
            options.acceleration = Acceleration.SERIAL
        elif args.gpu:
            options.acceleration = Acceleration.GPU

        intent = OptimizerIntent(contrast_boost=args.contrast)
        result = engine.apply(spec, buffer, options=options, intent=intent)

    if not cv2.imwrite(args.output, _to_bgr(buffer.pixels)):
        print(f"Error: could not write image {args.output}", file=sys.stderr)
        return 1

    print(f"Applied {spec.variant.value} curve ({spec.channel.value}) to {args.input}")
    print(f"  {buffer.width}x{buffer.height}, {buffer.channels} channel(s), {buffer.bit_depth}-bit")
    print(f"  Backend: {result.backend}, threads: {result.threads}, LUT: {result.lut_size}")
    if result.optimized:
        print("  Curve refined by optimizer")
    print(f"  Time: {result.elapsed_ms:.1f} ms")
    print(f"Wrote {args.output}")
    return 0


def run_lut(args):
    """Print the LUT of a curve."""
    from tonecurve.curves.lut import build_lut

    spec = spec_from_args(args)
    lut = build_lut(spec, args.size)

    if args.json:
        print(json.dumps({
            'curve': spec.to_dict(),
            'size': lut.size,
            'values': lut.values.tolist(),
        }, indent=2))
        return 0

    for index, value in enumerate(lut.values):
        print(f"{index:5d}  {value:.6f}")
    return 0


def run_presets(args):
    """List presets by category."""
    from tonecurve.curves.presets import presets_by_category

    for category, presets in presets_by_category(args.channel).items():
        print(f"{category}:")
        for preset in presets:
            print(f"  {preset.name:<22} {preset.description}")
    return 0


def run_status(args):
    """Show acceleration status."""
    from tonecurve.core.hardware import print_acceleration_status

    print_acceleration_status()
    return 0


if __name__ == '__main__':
    sys.exit(main())
