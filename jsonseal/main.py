"""Command line entry point: ``python -m jsonseal``."""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Optional

from .envelope import EnvelopeCodec
from .errors import JsonSealError
from .version import ENVELOPE_VERSION, __version__


class _CliTheme:
    def __init__(self, plain: bool):
        self.plain = plain
        self.reset = "" if plain else "\033[0m"
        self.red = "" if plain else "\033[31m"
        self.green = "" if plain else "\033[32m"

    def ok(self, text: str) -> str:
        return f"{self.green}{text}{self.reset}"

    def err(self, text: str) -> str:
        return f"{self.red}{text}{self.reset}"


def _cli_plain_mode() -> bool:
    if os.getenv("JSONSEAL_CLI_PLAIN") or os.getenv("NO_COLOR"):
        return True
    return not sys.stderr.isatty()


def _read_input(spec: str) -> bytes:
    if spec == "-":
        return sys.stdin.buffer.read()
    return Path(spec).expanduser().read_bytes()


def _write_output(spec: Optional[str], data: bytes) -> None:
    if spec is None or spec == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
        return
    path = Path(spec).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jsonseal",
        description="Encrypt and decrypt JSON documents as application/x-json-encrypted blobs.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"jsonseal {__version__} (envelope {ENVELOPE_VERSION})",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("input", help="Input file, or - for stdin")
    common.add_argument("-o", "--output", help="Output file (default: stdout)")
    common.add_argument("--config", help="Key-material file (default: $JSONSEAL_CONFIG)")
    common.add_argument("--env", dest="environment", help="Config section (default: $JSONSEAL_ENV or development)")
    common.add_argument("--cipher", help="Override the configured cipher name, e.g. aes-256-cbc")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("dump", parents=[common], help="Encrypt a JSON document")
    subparsers.add_parser("load", parents=[common], help="Decrypt a blob back to JSON")
    subparsers.add_parser("upgrade", parents=[common], help="Rewrite a legacy or current blob as a current envelope")
    return parser


def cli(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    theme = _CliTheme(_cli_plain_mode())

    try:
        codec = EnvelopeCodec(args.cipher, args.config, environment=args.environment)
        data = _read_input(args.input)
        if args.command == "dump":
            value = json.loads(data.decode("utf-8"))
            _write_output(args.output, codec.dump(value))
        elif args.command == "load":
            value = codec.load(data)
            text = json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
            _write_output(args.output, text.encode("utf-8"))
        else:
            _write_output(args.output, codec.upgrade(data))
    except (JsonSealError, OSError, ValueError) as exc:
        print(theme.err(f"{args.command} failed: {exc}"), file=sys.stderr)
        return 1

    if args.output not in (None, "-"):
        print(theme.ok(f"{args.command}: wrote {args.output}"), file=sys.stderr)
    return 0


def main(argv=None) -> int:
    try:
        return cli(argv)
    except KeyboardInterrupt:
        print("Exiting...", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
