"""
Endpoint table and naming checks for a resource file.

Prints the endpoints implied by the resource declarations of a YAML file,
or checks the declarations against the naming rules.

Usage Examples:
    Print the endpoint table of the service:
        python -m src.describe_api

    Print it under a version prefix, as JSON:
        python -m src.describe_api --version v1 --format json

    Check naming rules (exit status 1 on violations):
        python -m src.describe_api --check --config path/to/resources.yaml
"""

import argparse
import json
import sys
from typing import Optional, Sequence, TextIO

from src.config import ConfigurationError, get_settings
from src.resources import Endpoint, ResourceRegistry, load_resource_specs

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_CONFIG_ERROR = 2


def format_table(endpoints: Sequence[Endpoint]) -> str:
    """Render endpoints as an aligned plain-text table."""
    headers = ("METHOD", "PATH", "ACTION")
    rows = [(e.method, e.path, e.action) for e in endpoints]
    widths = [
        max(len(row[i]) for row in [headers, *rows]) for i in range(len(headers))
    ]
    lines = []
    for row in [headers, *rows]:
        lines.append("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())
    return "\n".join(lines)


def format_json(endpoints: Sequence[Endpoint]) -> str:
    return json.dumps(
        [{"method": e.method, "path": e.path, "action": e.action} for e in endpoints],
        indent=2,
    )


def check_registry(registry: ResourceRegistry, out: TextIO) -> int:
    """Print naming violations and return the exit status."""
    problems = registry.naming_problems()
    if not problems:
        print(f"OK: {len(registry)} resources follow the naming rules", file=out)
        return EXIT_OK
    for problem in problems:
        print(f"- {problem}", file=out)
    print(f"{len(problems)} naming violation(s) found", file=out)
    return EXIT_VIOLATIONS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Describe the endpoints of a resource file",
    )
    parser.add_argument(
        "--config",
        help="Resource YAML file (default: the service's resources_file setting)",
    )
    parser.add_argument(
        "--version",
        dest="api_version",
        help="Version prefix for the paths, e.g. v1",
    )
    parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Check naming rules instead of printing the table",
    )
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    out: TextIO = sys.stdout,
    err: TextIO = sys.stderr,
) -> int:
    """Run the command line interface.

    Args:
        argv: Arguments, ``sys.argv[1:]`` by default.
        out: Stream for regular output.
        err: Stream for error messages.

    Returns:
        Exit status: 0 on success, 1 on naming violations, 2 on
        configuration errors.
    """
    args = build_parser().parse_args(argv)
    config_path = args.config or get_settings().resources_file

    try:
        registry = load_resource_specs(config_path)
        if args.check:
            return check_registry(registry, out)
        endpoints = registry.endpoints(args.api_version)
    except (ConfigurationError, ValueError) as exc:
        print(f"Error: {exc}", file=err)
        return EXIT_CONFIG_ERROR

    if args.format == "json":
        print(format_json(endpoints), file=out)
    else:
        print(format_table(endpoints), file=out)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
