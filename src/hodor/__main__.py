"""Command line entry point: ``hodor`` / ``python -m hodor``."""

from __future__ import annotations

import argparse
import sys

from hodor import __version__


def parse_listen(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {value!r}")
    return host or "0.0.0.0", int(port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hodor", description="Hookable deployment of releases")
    parser.add_argument("-c", "--config", help="File path of the release configuration (JSON or YAML).")
    parser.add_argument("-d", "--dbfilepath", help="File path of the status database.")
    parser.add_argument(
        "-l", "--listen", type=parse_listen, help="Listen address of the HTTP server, as HOST:PORT."
    )
    parser.add_argument("-v", "--version", action="store_true", help="Display the version and exit.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.version:
        print("Hodor", __version__)
        return 0

    from hodor.core.config import Settings
    from hodor.core.exceptions import HodorError
    from hodor.main import run

    overrides = {}
    if args.config:
        overrides["config_path"] = args.config
    if args.dbfilepath:
        overrides["db_path"] = args.dbfilepath
    if args.listen:
        overrides["host"], overrides["port"] = args.listen

    settings = Settings(**overrides)
    try:
        run(settings)
    except HodorError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
