"""
Command line interface for Coursebook.

Usage:
  coursebook build lessons/
  coursebook build lessons/ --output site --workers 4 --strict
  coursebook check lessons/ --report report.json
  coursebook sequence lessons/
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from coursebook import __version__
from coursebook.classroom import load
from coursebook.config import CourseConfig, load_config
from coursebook.errors import CoursebookError
from coursebook.pipeline import build_course, check_course, log_report, save_report

logger = logging.getLogger("coursebook")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_ISSUES = 2


def setup_logging(verbose: bool = False, quiet: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coursebook",
        description="Validate and publish a cross-linked Markdown lesson course",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config YAML (default: ./coursebook.yaml if present)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Render the course to HTML")
    build.add_argument("root", type=Path, nargs="?", help="Corpus root directory")
    build.add_argument("-o", "--output", type=Path, default=None, help="Output directory")
    build.add_argument("--workers", type=int, default=None, help="Render documents in parallel")
    build.add_argument("--title", default=None, help="Site title")
    build.add_argument("--no-assets", action="store_true", help="Don't copy asset files")
    build.add_argument("--strict", action="store_true", help="Exit with status 2 if errors were found")

    check = subparsers.add_parser("check", help="Validate links and lesson sequence only")
    check.add_argument("root", type=Path, nargs="?", help="Corpus root directory")
    check.add_argument("--report", type=Path, default=None, help="Save the report as JSON")
    check.add_argument("--strict", action="store_true", help="Exit with status 2 if errors were found")

    sequence = subparsers.add_parser("sequence", help="Print the course order")
    sequence.add_argument("root", type=Path, nargs="?", help="Corpus root directory")

    return parser


def apply_cli_overrides(config: CourseConfig, args: argparse.Namespace) -> CourseConfig:
    """CLI flags win over config file and environment."""
    updates = {}
    if getattr(args, "output", None) is not None:
        updates["output_dir"] = args.output
    if getattr(args, "workers", None) is not None:
        updates["workers"] = args.workers
    if getattr(args, "title", None) is not None:
        updates["site_title"] = args.title
    if getattr(args, "no_assets", False):
        updates["copy_assets"] = False
    if getattr(args, "strict", False):
        updates["strict"] = True
    if args.root is not None:
        updates["content_dir"] = args.root
    # Round-trip through validation so CLI values get the same checks
    return CourseConfig(**{**config.model_dump(), **updates})


def run_build(config: CourseConfig) -> int:
    result = build_course(config.content_dir, config)
    logger.info("=" * 50)
    logger.info("BUILD COMPLETE")
    logger.info("=" * 50)
    logger.info(f"Output: {config.output_dir}")
    logger.info(f"Documents: {result.report.stats.get('documents', 0)}")
    logger.info(f"Rendered: {result.report.stats.get('rendered', 0)}")
    logger.info(f"Course sequence: {result.report.stats.get('sequence_length', 0)} lessons")
    if config.strict and result.report.has_errors:
        return EXIT_ISSUES
    return EXIT_OK


def run_check(config: CourseConfig, report_path: Optional[Path]) -> int:
    store = load(config.content_dir, config)
    check = check_course(store, config)
    log_report(check.report)
    if report_path is not None:
        save_report(check.report, report_path)
    if config.strict and check.report.has_errors:
        return EXIT_ISSUES
    return EXIT_OK


def run_sequence(config: CourseConfig) -> int:
    store = load(config.content_dir, config)
    check = check_course(store, config)
    for position, doc_id in enumerate(check.sequence.identifiers, 1):
        print(f"{position:3d}. {doc_id}  {store[doc_id].title}")
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    try:
        config = apply_cli_overrides(load_config(args.config), args)
    except (CoursebookError, ValidationError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_FATAL

    if config.content_dir is None:
        parser.error("no corpus root given (pass ROOT or set content_dir / COURSEBOOK_CONTENT_DIR)")

    try:
        if args.command == "build":
            return run_build(config)
        if args.command == "check":
            return run_check(config, args.report)
        return run_sequence(config)
    except CoursebookError as e:
        logger.error(str(e))
        return EXIT_FATAL


def main_entry():
    raise SystemExit(main())
