#!/usr/bin/env python3
"""
CLI script to run the XPath verifier.

Reads the input JSON (headings → expressions, urls → targets + content)
from a file or stdin and prints, for every expression, which urls matched.

With --extract (-e) it prints the value each expression extracts from each
document instead, ignoring targets.

Exit codes:
  0  report written
  1  input/output file could not be read or written
  2  input rejected (malformed JSON or schema violation); nothing is evaluated
"""

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from xpath_verifier.config import ParserBackend, VerifierConfig
from xpath_verifier.exceptions import InputError
from xpath_verifier.loader import dump_report, load_input
from xpath_verifier.main import XPathVerifier

EXIT_OK = 0
EXIT_IO_ERROR = 1
EXIT_INPUT_ERROR = 2


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Verify XPath expressions against HTML documents")
    parser.add_argument("input", nargs="?", default="-", help="Input JSON file (default: stdin)")
    parser.add_argument("--output", "-o", help="Output JSON file (default: stdout)")
    parser.add_argument("--workers", "-w", type=int, help="Maximum concurrent evaluation units")
    parser.add_argument("--parser", "-p", choices=[b.value for b in ParserBackend],
                        help="Tree builder for documents")
    parser.add_argument("--evaluate-missing", action="store_true", default=None,
                        help="Evaluate pairs without a target and log what they yield")
    parser.add_argument("--extract", "-e", action="store_true",
                        help="Print extracted values instead of verification results")
    parser.add_argument("--diagnostics", "-d", help="Write per-pair NoMatch reasons to this JSON file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def _read_input(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def _write(text: str, destination) -> None:
    if destination:
        Path(destination).write_text(text + "\n", encoding="utf-8")
        print(f"Saved to: {destination}", file=sys.stderr)
    else:
        print(text)


def main(argv=None) -> int:
    # Pick up XPATH_VERIFIER_* settings from a local .env file
    load_dotenv()

    args = build_arg_parser().parse_args(argv)

    try:
        config = VerifierConfig.from_env(
            max_workers=args.workers,
            parser_backend=args.parser,
            evaluate_missing_targets=args.evaluate_missing,
            log_level="DEBUG" if args.verbose else None
        )
        raw = _read_input(args.input)
        request = load_input(raw)
    except InputError as e:
        print(f"Error processing input: {e.message}", file=sys.stderr)
        for problem in e.errors:
            print(f"  - {problem}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except OSError as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return EXIT_IO_ERROR

    verifier = XPathVerifier(config=config)

    try:
        if args.extract:
            _write(dump_report(verifier.extract(request)), args.output)
            return EXIT_OK

        run = verifier.verify(request)
        _write(dump_report(run.to_output()), args.output)

        if args.diagnostics:
            entries = [o.model_dump(mode="json") for o in run.diagnostics]
            Path(args.diagnostics).write_text(
                json.dumps(entries, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
            )
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return EXIT_IO_ERROR

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
