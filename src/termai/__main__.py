"""CLI entrypoint for TermAI."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path
import sys

from .app import TermAIApp
from .config import ensure_config_dir, load_config
from .exceptions import ConfigValidationError
from .logging_utils import configure_logging
from .prompt import run_prompt


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="termai",
        description="TermAI - terminal chat client for OpenAI-compatible endpoints",
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        help="Send one prompt, print the reply and exit instead of opening the chat",
    )
    parser.add_argument(
        "-p",
        "--profile",
        help="Profile to use (defaults to app.default_profile)",
    )
    parser.add_argument(
        "-f",
        "--file",
        dest="files",
        action="append",
        default=[],
        metavar="PATH",
        help="Attach a file to the first message (repeatable)",
    )
    parser.add_argument(
        "-d",
        "--dir",
        dest="context_dir",
        metavar="DIR",
        help="Load supported files from DIR as persistent context",
    )
    parser.add_argument(
        "-l",
        "--load",
        dest="resume",
        metavar="PATH",
        help="Resume a saved .chat transcript",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Read configuration from this TOML file",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the TUI.

    With a positional prompt the reply is streamed to stdout instead.
    """

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("termai-tui")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"termai {version}")
        return

    if args.prompt is not None and (args.context_dir or args.resume):
        parser.error("--dir and --load only apply to the interactive chat")

    ensure_config_dir()
    config = load_config(args.config)

    if args.prompt is not None:
        configure_logging(config["logging"])
        try:
            code = asyncio.run(
                run_prompt(
                    args.prompt,
                    config=config,
                    profile_name=args.profile,
                    files=args.files,
                )
            )
        except ConfigValidationError as exc:
            print(f"termai: {exc}", file=sys.stderr)
            raise SystemExit(2) from exc
        except KeyboardInterrupt:
            raise SystemExit(130) from None
        if code:
            raise SystemExit(code)
        return

    try:
        app = TermAIApp(
            profile_name=args.profile,
            files=args.files,
            context_dir=args.context_dir,
            resume=args.resume,
            config=config,
        )
    except ConfigValidationError as exc:
        print(f"termai: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc
    app.run()


if __name__ == "__main__":
    main()
