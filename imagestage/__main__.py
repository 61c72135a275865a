from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import uvicorn
from pydantic import ValidationError

from .app import DEFAULT_HOST, DEFAULT_IMAGE_DIR, DEFAULT_PORT, ServerConfig, create_app, load_helper_config
from .config import ConfigError
from .image import ImageHelper, open_image
from .models.config import HelperConfig, TransformStep
from .result import Result
from .sizing import ResizeMode

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "info", log_file: Optional[Path] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, handlers=handlers, force=True)


def _file_mode(value: str) -> int:
    try:
        mode = int(value, 8)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an octal mode such as 0755, got {value!r}") from exc
    if not 0 <= mode <= 0o777:
        raise argparse.ArgumentTypeError(f"expected permission bits between 0000 and 0777, got {value!r}")
    return mode


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="imagestage", description="Resize, rotate and serve JPEG/PNG/GIF images")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with helper settings")
    parser.add_argument("--log-file", type=Path, default=None, help="Write logs to this file as well")
    parser.add_argument("--log-level", default="info", help="Logging level")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default=DEFAULT_HOST, help="Host interface to bind to")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on")
    serve.add_argument("--image-dir", type=Path, default=DEFAULT_IMAGE_DIR, help="Directory with source images")
    serve.add_argument("--output-dir", type=Path, default=None, help="Directory for saved transforms")

    convert = commands.add_parser("convert", help="Transform one image file")
    convert.add_argument("source", type=Path)
    convert.add_argument("dest", type=Path)
    convert.add_argument("--mode", choices=[mode.value for mode in ResizeMode], default=None)
    convert.add_argument("--width", type=float, default=None)
    convert.add_argument("--height", type=float, default=None)
    convert.add_argument("--length", type=float, default=None, help="Long edge length for --mode long_edge")
    convert.add_argument("--percent", type=float, default=None, help="Percentage for --mode scale")
    convert.add_argument("--rotate", type=float, default=None, help="Clockwise rotation in degrees")
    convert.add_argument("--background", default=None, help="Background colour as #RRGGBB")
    convert.add_argument("--opacity", type=float, default=None, help="Background opacity, 0-100")
    convert.add_argument("--quality", type=int, default=None, help="JPEG quality, 0-100")
    convert.add_argument("--compression", type=int, default=None, help="PNG compression, 0-9")
    convert.add_argument("--file-mode", type=_file_mode, default=None, help="Octal permission bits for DEST")
    return parser.parse_args(argv)


def run_convert(args: argparse.Namespace, config: HelperConfig) -> int:
    background = args.background
    if background is not None and not background.startswith("#"):
        background = f"#{background}"
    try:
        step = TransformStep(
            mode=args.mode,
            width=args.width,
            height=args.height,
            length=args.length,
            percent=args.percent,
            rotate=args.rotate,
            background=background,
            opacity=args.opacity,
        )
    except ValidationError as exc:
        print(f"error: invalid transform: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 2
    opened = open_image(args.source, config)
    if opened.error is not None:
        print(f"error: {opened.error}", file=sys.stderr)
        return 1

    with opened.unwrap() as helper:
        result: Result[ImageHelper] = helper.apply(step).and_then(
            lambda current: current.save(
                args.dest,
                quality=args.quality,
                compression=args.compression,
                mode=args.file_mode,
            )
        )
        size = helper.size
    if result.error is not None:
        print(f"error: {result.error}", file=sys.stderr)
        return 1
    print(f"{args.dest} {size[0]}x{size[1]}" if size else str(args.dest))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    server_config = ServerConfig(config_path=args.config)
    try:
        helper_config = load_helper_config(server_config)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.command == "convert":
        return run_convert(args, helper_config)

    server_config.host = args.host
    server_config.port = args.port
    server_config.image_dir = args.image_dir
    server_config.output_dir = args.output_dir
    server_config.helper = helper_config
    app = create_app(server_config)
    uvicorn.run(app, host=server_config.host, port=server_config.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
