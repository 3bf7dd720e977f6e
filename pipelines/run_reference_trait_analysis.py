#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Reference Trait Analysis Pipeline

Runs the full analysis: load phenotype and feature tables, transform traits,
remove the sex covariate, split Training/Test cohorts, fit CCA on the
Training cohort, project the Test cohort's reference traits and correlate
the projection with the feature table.

Usage:
    # Default input paths from reftrait/config.py
    python pipelines/run_reference_trait_analysis.py

    # Explicit inputs
    python pipelines/run_reference_trait_analysis.py \\
        --reference data/open_field.csv --target data/anxiety.csv \\
        --expression data/hippocampus_expression.tsv

    # Simulated cohort with a known canonical correlation
    python pipelines/run_reference_trait_analysis.py --synthetic --rho 0.6

    # Verbose output, no figures
    python pipelines/run_reference_trait_analysis.py --synthetic --no-figures --verbose
"""

import argparse
import logging
import os
import sys

# Add project root to path (pipelines/ is one level below root)
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from reftrait import config
from reftrait.__version__ import __version__
from reftrait.data_loader import ReferenceTraitDataLoader
from reftrait.errors import ReferenceTraitError
from reftrait.pipeline import run_analysis
from reftrait.simulation import simulate_cohort

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Reference trait analysis: CCA projection of reference traits '
                    'and correlation with external features',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use default input paths
  python pipelines/run_reference_trait_analysis.py

  # Simulated data, 100 training subjects
  python pipelines/run_reference_trait_analysis.py --synthetic --n-train 100
        """
    )

    parser.add_argument('--reference', type=str, default=config.REFERENCE_TRAITS_PATH,
                        help='Reference trait table (subject × trait)')
    parser.add_argument('--target', type=str, default=config.TARGET_TRAITS_PATH,
                        help='Target trait table (subject × trait)')
    parser.add_argument('--expression', type=str, default=config.EXPRESSION_PATH,
                        help='External feature table (feature × subject)')
    parser.add_argument('--output-dir', type=str, default=config.RESULTS_DIR,
                        help=f'Output directory (default: {config.RESULTS_DIR})')

    parser.add_argument('--synthetic', action='store_true',
                        help='Run on a simulated cohort instead of input files')
    parser.add_argument('--n-subjects', type=int, default=258,
                        help='Simulated subjects (with --synthetic, default: 258)')
    parser.add_argument('--rho', type=float, default=0.6,
                        help='Injected canonical correlation (with --synthetic, default: 0.6)')

    parser.add_argument('--seed', type=int, default=config.DEFAULT_SEED,
                        help=f'Cohort split seed (default: {config.DEFAULT_SEED})')
    parser.add_argument('--train-fraction', type=float, default=config.TRAIN_FRACTION,
                        help=f'Training share of subjects (default: {config.TRAIN_FRACTION})')
    parser.add_argument('--n-train', type=int, default=None,
                        help='Exact Training cohort size (overrides --train-fraction)')
    parser.add_argument('--component', type=int, default=config.DEFAULT_COMPONENT,
                        help='Canonical component to project (default: 1)')

    parser.add_argument('--no-sex-removal', action='store_true',
                        help='Skip sex-covariate removal')
    parser.add_argument('--no-figures', action='store_true',
                        help='Skip figure generation')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    return parser.parse_args(argv)


def main(argv=None):
    """Main analysis workflow.

    Returns:
        int: 0 on success, 1 on invalid input
    """
    args = parse_arguments(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose mode enabled")

    try:
        if args.synthetic:
            logger.info(f"Simulating cohort: {args.n_subjects} subjects, rho = {args.rho}")
            data = simulate_cohort(n_subjects=args.n_subjects, rho=args.rho, seed=args.seed)
        else:
            loader = ReferenceTraitDataLoader(args.reference, args.target, args.expression)
            data = loader.load_all()

        results = run_analysis(
            data['reference'],
            data['target'],
            data['expression'],
            output_dir=args.output_dir,
            seed=args.seed,
            train_fraction=args.train_fraction,
            n_train=args.n_train,
            component=args.component,
            remove_sex=not args.no_sex_removal,
            make_figures=not args.no_figures
        )

        logger.info("Output files:")
        for name, path in results['file_paths'].items():
            logger.info(f"  {name}: {path}")
        for path in results['figure_paths']:
            logger.info(f"  figure: {path}")
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1

    except ReferenceTraitError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
