"""Command line interface for REST client generation."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .generator import SchemaLoadError, WriteError, run_generation
from .verify import format_report


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="proto-to-rest-client-generator",
        description="Generate HTTP/JSON REST client packages from RPC API schema YAML",
    )
    parser.add_argument("--input", required=True, help="Path to an API schema YAML file")
    parser.add_argument(
        "--output", required=True, help="Output directory for the generated package"
    )
    parser.add_argument(
        "--service-config",
        help="Path to a service config YAML enabling standard surface methods",
    )
    parser.add_argument("--package", help="Name of the generated Python package")
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Import the generated package and check models and clients against the schema",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    package_name = args.package
    if package_name is not None and not package_name.isidentifier():
        parser.error(f"--package must be a valid Python identifier: {package_name!r}")
        return 2

    try:
        run = run_generation(
            input_path=Path(args.input),
            output_dir=Path(args.output),
            verify=bool(args.verify),
            service_config_path=Path(args.service_config) if args.service_config else None,
            package_name=package_name,
        )
    except (SchemaLoadError, WriteError) as exc:
        parser.error(str(exc))
        return 2

    for warning in run.result.warnings:
        print(f"Warning: {warning}")
    for error in run.result.errors:
        print(f"Error: {error.message}")

    exit_code = 1 if run.result.errors else 0
    if run.verification_report is not None:
        print(format_report(run.verification_report))
        if run.verification_report.mismatch_count > 0:
            exit_code = 1

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
