"""
Run command: the full coexpressolog pipeline from a config file.
"""

import argparse
import logging
from pathlib import Path


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the run subcommand."""
    parser = subparsers.add_parser(
        "run",
        help="Run the full pipeline from a config file",
        description=(
            "Build mutual-rank networks per species, test neighborhood conservation "
            "for every species pair, correct for multiple testing, enumerate "
            "conserved cliques per HOG and write clique tables, gene lists, "
            "summaries, the polarity report and a run manifest."
        )
    )

    parser.add_argument("--config", "-c", type=Path, required=True,
                        help="Pipeline config (.yaml, .yml or .json)")
    parser.add_argument("--tissue", "-t", nargs="+", default=None,
                        help="Tissues to run (default: config tissues, else all)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output directory (overrides data.output_dir)")
    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Worker threads for pair tests and clique search")
    parser.add_argument("--no-unsigned", action="store_true",
                        help="Skip the unsigned pass and the polarity report")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging and progress bars")

    parser.set_defaults(func=run_pipeline_command)


def run_pipeline_command(args: argparse.Namespace) -> int:
    """Execute the run command. Returns 1 only if no unit completed."""
    from coexpressolog.config import build_pipeline_config, load_config, merge_config_with_args
    from coexpressolog.pipeline import run_pipeline

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    if args.workers is not None and args.workers < 1:
        logger.error(f"--workers must be >= 1, got {args.workers}")
        return 2

    config_path = args.config.resolve()
    config = build_pipeline_config(load_config(config_path), base_dir=config_path.parent)
    config = merge_config_with_args(config, args)

    print(f"\n{'='*70}")
    print("  Coexpressolog Clique Discovery")
    print(f"{'='*70}\n")
    logger.info(f"Config: {config_path}")
    logger.info(f"Expression: {config.data.expression_file}")
    logger.info(f"Orthologs: {config.data.ortholog_file}")
    logger.info(f"Output: {config.data.output_dir}")
    logger.info(f"Modes: {', '.join(m.value for m in config.network.modes)}")

    result = run_pipeline(config, verbose=args.verbose)
    manifest = result.manifest
    counts = manifest.counts()

    print(f"\n{'='*70}")
    print("  Run Summary")
    print(f"{'='*70}")
    print(f"  Tissues completed: {len(result.tissues)}")
    for tissue, tissue_result in sorted(result.tissues.items()):
        for mode, mode_result in tissue_result.modes.items():
            print(f"    {tissue} ({mode.value}): {len(mode_result.cliques.all)} cliques")
    print(f"  Units: {counts['completed']} completed, {counts['partial']} partial, "
          f"{counts['failed']} failed")
    print(f"  Manifest: {Path(config.data.output_dir) / 'manifest.json'}")
    print(f"{'='*70}\n")

    if not manifest.succeeded:
        logger.error("No unit completed")
        return 1
    return 0
