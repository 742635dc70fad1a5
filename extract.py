#!/usr/bin/env python3
"""
Command line entry point for the corpus extract pipeline.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from corpus_extract_pipeline import CorpusExtractPipeline
from file_lock import FileLock
from pipeline_configs import ExtractConfig
from pipeline_errors import ExtractError

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Build partials and corpus totals from package archives",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  extract.py partials                      # Build missing partials
  extract.py partials --rebuild            # Rebuild every partial
  extract.py partials --package pkg.tgz    # Build a single partial
  extract.py totals                        # Rebuild corpus totals
  extract.py --dir /data/npm --ast run     # Partials then totals, with tree dumps
        """
    )

    parser.add_argument('--dir', type=Path,
                        help='Root directory holding current/, partials/, tmp/ and out/')
    parser.add_argument('--config', type=Path,
                        help='JSON configuration file')
    parser.add_argument('--rules', type=Path,
                        help='Exclusion rules file (default: <dir>/data/code.excluded.txt)')
    parser.add_argument('--compress', action='store_true', default=None,
                        help='LZ4-compress tree dumps and totals')
    parser.add_argument('--ast', action='store_true', default=None,
                        help='Enable syntax tree dumps')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')

    commands = parser.add_subparsers(dest='command', required=True)
    partials = commands.add_parser('partials', help='Build per-package partials')
    partials.add_argument('--rebuild', action='store_true',
                          help='Rebuild existing partials, reusing cached listings')
    partials.add_argument('--package', metavar='ID',
                          help='Only handle this package archive')
    commands.add_parser('totals', help='Rebuild corpus totals from all partials')
    commands.add_parser('run', help='Build missing partials, then totals')

    return parser.parse_args(argv)


def build_config(args) -> ExtractConfig:
    base = ExtractConfig.from_json_file(args.config) if args.config else None
    config = ExtractConfig.from_env(base)
    overrides = {}
    if args.dir is not None:
        overrides['root_dir'] = args.dir
        if args.rules is None and config.rules_file == config.root_dir / 'data' / 'code.excluded.txt':
            overrides['rules_file'] = None
    if args.rules is not None:
        overrides['rules_file'] = args.rules
    if args.compress is not None:
        overrides['compress'] = args.compress
    if args.ast is not None:
        overrides['features_ast'] = args.ast
    if overrides:
        values = dict(config.__dict__)
        values.update(overrides)
        config = ExtractConfig(**values)
    return config


async def dispatch(args, config: ExtractConfig):
    pipeline = CorpusExtractPipeline(config)
    if args.command == 'partials':
        mode = 'rebuild' if args.rebuild else 'missing'
        summary = await pipeline.partials(mode, single=args.package)
        return 1 if summary.errors and args.package else 0
    if args.command == 'totals':
        await pipeline.totals()
        return 0
    await pipeline.run()
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT
    )

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        with FileLock(config.lock_file):
            return asyncio.run(dispatch(args, config))
    except TimeoutError as e:
        logger.error(str(e))
        return 3
    except ExtractError as e:
        logger.error(f"Extract failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
