"""
Command Line Interface for Tap Karte
====================================

Convert nursing memos into clinical documentation from the terminal.

Usage:
------
    # Convert text directly
    tapkarte --text "10時 体温37.8度 頭痛あり"

    # Convert a memo file as a SOAP report
    tapkarte memo.txt --doc-type 報告書 --format SOAP形式

    # Read from stdin, print JSON
    cat memo.txt | tapkarte --json

Exit codes: 0 success, 1 conversion/validation error, 130 interrupted.
"""

import argparse
import json
import os
import sys
import logging
from pathlib import Path
from typing import Optional

from config import get_settings
from exceptions import TapKarteError
from models import DocumentType, OutputFormat, WritingStyle
from pipeline import ConversionPipeline


# ANSI colors for terminal output
class Colors:
    """ANSI color codes for pretty terminal output."""
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def colorize(text: str, color: str) -> str:
    """Add color to text if terminal supports it."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.ENDC}"
    return text


def print_banner():
    """Print a small banner for the CLI."""
    banner = """
    +------------------------------------------+
    |   タップカルテ  Tap Karte                |
    |   観察メモ -> 看護記録 / 報告書          |
    +------------------------------------------+
    """
    print(colorize(banner, Colors.CYAN))


def create_parser() -> argparse.ArgumentParser:
    """Argument parser for the tapkarte command."""
    parser = argparse.ArgumentParser(
        prog="tapkarte",
        description="Convert informal nursing memos into clinical documentation",
        epilog="Example: tapkarte memo.txt --doc-type 報告書 --format SOAP形式",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Positional argument: memo file
    parser.add_argument(
        "input_file",
        nargs="?",
        help="Path to a text file with the memo ('-' or omitted reads stdin)"
    )

    # Alternative input: direct text
    parser.add_argument(
        "--text", "-t",
        type=str,
        help="Memo text to convert"
    )

    # Conversion options
    parser.add_argument(
        "--doc-type",
        choices=[d.value for d in DocumentType],
        default=DocumentType.RECORD.value,
        help="Document type (default: 記録)"
    )

    parser.add_argument(
        "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.NARRATIVE.value,
        help="Output format (default: 文章形式)"
    )

    parser.add_argument(
        "--style",
        choices=[s.value for s in WritingStyle],
        default=WritingStyle.PLAIN.value,
        help="Writing style (default: だ・である体)"
    )

    parser.add_argument(
        "--char-limit",
        type=int,
        default=None,
        help="Maximum output characters (clamped to the configured range)"
    )

    # Model options
    parser.add_argument(
        "--provider",
        choices=["gemini", "anthropic"],
        help="LLM provider (overrides config)"
    )

    # Output format
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output result as JSON"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output with debug info"
    )

    parser.add_argument(
        "--no-banner",
        action="store_true",
        help="Don't show the banner"
    )

    return parser


def setup_logging_for_cli(verbose: bool, quiet: bool) -> None:
    """Logs go to stderr so stdout carries only the document."""
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", stream=sys.stderr)


def read_memo(parsed_args: argparse.Namespace) -> Optional[str]:
    """Memo text from --text, a file, or stdin (None when nothing was given)."""
    if parsed_args.text is not None:
        return parsed_args.text
    if parsed_args.input_file and parsed_args.input_file != "-":
        return Path(parsed_args.input_file).read_text(encoding="utf-8")
    if parsed_args.input_file == "-" or not sys.stdin.isatty():
        return sys.stdin.read()
    return None


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    setup_logging_for_cli(parsed_args.verbose, parsed_args.quiet)

    # JSON output must stay machine readable
    show_chrome = not parsed_args.quiet and not parsed_args.json

    if not parsed_args.no_banner and show_chrome:
        print_banner()

    try:
        memo = read_memo(parsed_args)
    except OSError as e:
        print(colorize(f"\n❌ Cannot read {parsed_args.input_file}: {e}", Colors.RED))
        return 1

    if memo is None:
        parser.error("Provide a memo with --text, a file path, or stdin")

    try:
        # Settings are cached, so the provider override must land first
        if parsed_args.provider:
            os.environ["TAPKARTE_LLM_PROVIDER"] = parsed_args.provider
            get_settings.cache_clear()

        settings = get_settings()
        pipeline = ConversionPipeline(settings=settings)

        if show_chrome:
            print(colorize(
                f"\n📝 Converting memo ({parsed_args.doc_type} / {parsed_args.format} / "
                f"{parsed_args.style})...\n",
                Colors.CYAN
            ))

        result = pipeline.convert(
            memo,
            parsed_args.style,
            parsed_args.doc_type,
            parsed_args.format,
            parsed_args.char_limit,
        )

        if parsed_args.json:
            print(json.dumps(result.to_response_dict(), ensure_ascii=False, indent=2))
        else:
            print(result.converted_text)

        if result.demo and not parsed_args.json:
            print(colorize("\n⚠️  Demo output: configure an API key for real conversions", Colors.YELLOW))

        if show_chrome:
            print(colorize(
                f"\n✅ Done in {result.response_time_ms}ms "
                f"({len(result.converted_text)} chars)\n",
                Colors.GREEN
            ))

        return 0

    except TapKarteError as e:
        if parsed_args.json:
            print(json.dumps(e.to_dict(), ensure_ascii=False, indent=2))
        else:
            print(colorize(f"\n❌ Error: {e.message}", Colors.RED))
            if parsed_args.verbose and e.details:
                print(colorize(f"   Details: {e.details}", Colors.YELLOW))
        return 1

    except KeyboardInterrupt:
        print(colorize("\n\n⚠️  Interrupted by user", Colors.YELLOW))
        return 130


if __name__ == "__main__":
    sys.exit(main())
