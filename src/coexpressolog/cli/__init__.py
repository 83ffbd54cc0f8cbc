"""
Coexpressolog CLI - conserved co-expression cliques across species.

Commands:
    coexpressolog run       - Run the full pipeline from a config file
    coexpressolog validate  - Check a config file against the input data
"""

import argparse
import sys
from typing import Optional, List

from coexpressolog import __version__


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for coexpressolog."""
    parser = argparse.ArgumentParser(
        prog="coexpressolog",
        description="Conserved co-expression (coexpressolog) clique discovery across species",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  run        Run networks, conservation tests, FDR, cliques and polarity report
  validate   Check configuration and input tables without running

Examples:
  coexpressolog validate --config pipeline.yaml
  coexpressolog run --config pipeline.yaml --tissue leaf --workers 8
  coexpressolog run --config pipeline.yaml --no-unsigned --output results/signed_only
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from coexpressolog.cli import run, validate
    run.register_parser(subparsers)
    validate.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
