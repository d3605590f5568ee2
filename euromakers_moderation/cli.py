from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .catalog_validator import check_catalog
from .catalog_writer import write_entry_file
from .config import ModerationSettings
from .errors import ModerationError
from .issue_body import render_issue_file
from .issue_parser import parse_issue_file
from .logo_resolver import DEFAULT_MAX_BYTES, resolve_logo_file
from .scorer import score_file

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="euromakers-moderation",
        description="Moderation pipeline for software directory submissions",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress at INFO level")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse-issue", help="Extract and validate the payload from an issue body")
    p.add_argument("--body-file", required=True, help="File holding the raw issue body")
    p.add_argument("--output", default="submission-payload.json")

    p = sub.add_parser("score", help="Score a parsed submission")
    p.add_argument("--input", default="submission-payload.json")
    p.add_argument("--output", default="moderation-score.json")
    p.add_argument("--software-dir", default="data/software")

    p = sub.add_parser("resolve-logo", help="Store the submitted logo under the images directory")
    p.add_argument("--input", default="moderation-score.json")
    p.add_argument("--output", default=None, help="Defaults to --input")
    p.add_argument("--images-dir", default="public/images")
    p.add_argument("--max-bytes", type=_positive_int, default=DEFAULT_MAX_BYTES)

    p = sub.add_parser("write-entry", help="Write the catalog record for a scored submission")
    p.add_argument("--input", default="moderation-score.json")
    p.add_argument("--software-dir", default="data/software")

    p = sub.add_parser("validate-catalog", help="Check every catalog file against the record schema")
    p.add_argument("--software-dir", default="data/software")

    p = sub.add_parser("render-issue", help="Render the moderation issue body for a payload")
    p.add_argument("--input", default="submission-payload.json")
    p.add_argument("--output", default="issue-body.md")

    return parser


def _configure_logging(settings: ModerationSettings, verbose: bool) -> None:
    level = logging.INFO if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def run(args: argparse.Namespace, settings: ModerationSettings) -> str:
    if args.command == "parse-issue":
        parse_issue_file(args.body_file, args.output)
        return f"Parsed payload written to {args.output}"

    if args.command == "score":
        result = score_file(args.input, args.output, args.software_dir, settings)
        return f"Moderation score {result.score} ({result.decision}) written to {args.output}"

    if args.command == "resolve-logo":
        return resolve_logo_file(
            args.input,
            args.output or args.input,
            images_dir=args.images_dir,
            settings=settings,
            max_bytes=args.max_bytes,
        )

    if args.command == "write-entry":
        output_path = write_entry_file(args.input, args.software_dir)
        return f"Wrote software entry to {output_path}"

    if args.command == "render-issue":
        render_issue_file(args.input, args.output)
        return f"Issue body written to {args.output}"

    if args.command == "validate-catalog":
        return check_catalog(args.software_dir)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = ModerationSettings.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    _configure_logging(settings, args.verbose)

    try:
        summary = run(args, settings)
    except ModerationError as exc:
        logger.debug("Fatal moderation error", extra=exc.as_log_fields())
        print(exc.message, file=sys.stderr)
        return 1
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
