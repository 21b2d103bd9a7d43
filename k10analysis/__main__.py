"""
Main entry point for the K10 analysis.

This module provides the command line interface for running the analysis
on a survey file.
"""

import argparse
import logging
import sys
from typing import List, Optional

from k10analysis.components.config import LOG_LEVELS, ConfigManager, read_config_file
from k10analysis.pipeline import AnalysisPipeline

logger = logging.getLogger('k10analysis')


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Args:
        level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )
    # basicConfig only configures once; later calls still change the level
    logging.getLogger().setLevel(getattr(logging, level.upper()))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Cluster analysis of K10 psychological distress survey responses'
    )

    parser.add_argument(
        'data_path',
        nargs='?',
        help='Delimited survey file with a header row'
    )

    parser.add_argument(
        '--config',
        help='Path to configuration file (JSON or YAML)'
    )

    parser.add_argument(
        '--output-dir',
        help='Directory for charts and the summary'
    )

    k_group = parser.add_mutually_exclusive_group()
    k_group.add_argument(
        '--k',
        type=int,
        help='Number of clusters to report on'
    )
    k_group.add_argument(
        '--auto-k',
        action='store_true',
        help='Use the automatic elbow suggestion instead of a fixed k'
    )

    parser.add_argument(
        '--seed',
        type=int,
        help='Seed for k-means initialization'
    )

    parser.add_argument(
        '--log-level',
        choices=LOG_LEVELS,
        help='Logging level (defaults to logging.level from the configuration)'
    )

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """
    Collect configuration overrides from a file and the command line.

    Command line values win over the file.
    """
    overrides = {}

    if args.config:
        overrides.update(read_config_file(args.config))

    def section(name: str) -> dict:
        overrides[name] = dict(overrides.get(name) or {})
        return overrides[name]

    if args.data_path:
        section('data')['path'] = args.data_path

    if args.output_dir:
        section('output')['dir'] = args.output_dir

    if args.k is not None:
        section('clustering')['selected-k'] = args.k
    elif args.auto_k:
        section('clustering')['selected-k'] = None

    if args.seed is not None:
        section('clustering')['seed'] = args.seed

    if args.log_level:
        section('logging')['level'] = args.log_level.lower()

    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit status
    """
    args = parse_args(argv)
    setup_logging(args.log_level or 'INFO')

    try:
        config = ConfigManager.get_config(build_overrides(args))
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(config.get('logging.level'))

    if not config.get('data.path'):
        logger.error("No input file given; pass DATA_PATH, set data.path or K10_DATA_PATH")
        return 2

    try:
        result = AnalysisPipeline(config).run()
    except ValueError as e:
        # Every data and selection failure derives from ValueError
        logger.error(str(e))
        return 1

    selection = result['selected']
    logger.info(f"Reported k={selection.k} ({selection.method}); "
                f"outputs in {config.get('output.dir')}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
