#!/usr/bin/env python3
"""
crf_train_cli.py - Command-line interface for CRF training and SVM configuration

================================================================================
USAGE
================================================================================

    # Train a CRF with 9 labels on data/reviews.raw + data/reviews.tagged
    python crf_train_cli.py train data/reviews -n 9

    # Train, then score and tag an observation
    python crf_train_cli.py test data/reviews "the service was slow" -n 9

    # Show corpus statistics
    python crf_train_cli.py stats data/reviews -n 9

    # Show the SVM configuration
    python crf_train_cli.py svm --config my_config.json

    # Write the default configuration to ~/.config/crfsvm/config.json
    python crf_train_cli.py init-config

================================================================================
"""

import argparse
import sys
import os
import logging

# Add src directory to path if needed
src_dir = os.path.dirname(os.path.abspath(__file__))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

import util
from crf import Crf
from crf_config import CrfConfig, CrfSeqDelimiter
from crf_data import CrfSeqIter
from svm_config import SVMConfig

logger = logging.getLogger(__name__)


def setup_logging(verbose=False):
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)-8s %(message)s',
        datefmt='%H:%M:%S'
    )


def load_config(args):
    config, warnings = util.get_config_data(args.config)
    if warnings and args.verbose:
        print(warnings)
    return config


def build_crf(args, config):
    crf_section = config['crf']
    return Crf(
        args.labels,
        CrfConfig.from_dict(crf_section),
        CrfSeqDelimiter.from_dict(crf_section['delimiters']),
        args.dataset,
        min_count=crf_section['min_count'],
    )


def cmd_train(args):
    """Train a CRF model and print the training results."""
    config = load_config(args)

    print("=" * 60)
    print("CRF Training")
    print("=" * 60)
    print()
    print(f"Training set: {args.dataset}")
    print()

    crf = build_crf(args, config)
    return _print_training_result(crf.training_result)


def _print_training_result(result):
    """Print training results and return exit code."""
    if result.success:
        print("-" * 60)
        print("Training Results:")
        print(f"  Sequences:      {result.sequence_count:,}")
        print(f"  Tokens:         {result.token_count:,}")
        print(f"  Weights:        {len(result.model):,}")
        print(f"  Training time:  {result.training_time:.2f}s")
        if result.last_iteration:
            print(f"  Iterations:     {result.last_iteration}")
        if result.loss:
            print(f"  Final loss:     {result.loss}")
        print()
        print("Training complete!")
        return 0
    else:
        print(f"ERROR: {result.error_message}")
        return 1


def cmd_test(args):
    """Train a CRF model, then score and tag the given observation."""
    config = load_config(args)
    crf = build_crf(args, config)
    if not crf.is_trained:
        print(f"ERROR: {crf.training_result.error_message}")
        return 1

    try:
        score = crf.predict(args.text)
        labels = crf.tag(args.text)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Input:  {args.text}")
    print(f"Score:  {score:.4f}")
    print(f"Labels: {' '.join(str(label) for label in labels)}")
    return 0


def cmd_stats(args):
    """Show statistics for a training set."""
    config = load_config(args)
    delims = CrfSeqDelimiter.from_dict(config['crf']['delimiters'])

    try:
        stats = CrfSeqIter(args.labels, args.dataset, delims).stats()
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    print("=" * 60)
    print("Corpus Statistics")
    print("=" * 60)
    print()
    print(f"Training set:     {args.dataset}")
    print(f"Sequences:        {stats['sequence_count']:,}")
    print(f"Total tokens:     {stats['total_tokens']:,}")
    for label, count in stats['label_counts'].items():
        print(f"  Label {label:<3}       {count:,}")
    return 0


def cmd_svm(args):
    """Show the SVM configuration."""
    config = load_config(args)
    try:
        svm_config = SVMConfig.from_dict(config['svm'])
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    print(svm_config)
    print(f"Cross-validation: {svm_config.is_cross_validation}")
    return 0


def cmd_init_config(args):
    """Write the default configuration file."""
    path = args.config or util.get_user_config_path()
    if os.path.exists(path) and not args.force:
        print(f"ERROR: {path} already exists (use --force to overwrite)")
        return 1
    if not util.save_config_data(util.get_default_config_data(), path):
        return 1
    print(f"Default configuration written to {path}")
    return 0


def main(argv=None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="CRF training and SVM configuration CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose output')
    parser.add_argument('--version', action='version',
                        version=f'{util.get_package_name()} {util.get_version()}')
    parser.add_argument('-c', '--config', default=None,
                        help='Path to config.json (default: ~/.config/crfsvm/config.json)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    train_parser = subparsers.add_parser('train', help='Train a CRF model')
    train_parser.add_argument('dataset', help='Training set identifier (path without .raw/.tagged)')
    train_parser.add_argument('-n', '--labels', type=int, required=True, help='Number of labels')

    test_parser = subparsers.add_parser('test', help='Train, then score an observation')
    test_parser.add_argument('dataset', help='Training set identifier (path without .raw/.tagged)')
    test_parser.add_argument('text', help='Observation to score')
    test_parser.add_argument('-n', '--labels', type=int, required=True, help='Number of labels')

    stats_parser = subparsers.add_parser('stats', help='Show corpus statistics')
    stats_parser.add_argument('dataset', help='Training set identifier (path without .raw/.tagged)')
    stats_parser.add_argument('-n', '--labels', type=int, required=True, help='Number of labels')

    subparsers.add_parser('svm', help='Show the SVM configuration')

    init_parser = subparsers.add_parser('init-config', help='Write the default configuration')
    init_parser.add_argument('-f', '--force', action='store_true', help='Overwrite an existing file')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    try:
        if args.command == 'train':
            return cmd_train(args)
        elif args.command == 'test':
            return cmd_test(args)
        elif args.command == 'stats':
            return cmd_stats(args)
        elif args.command == 'svm':
            return cmd_svm(args)
        elif args.command == 'init-config':
            return cmd_init_config(args)
    except ValueError as e:
        # Invalid arguments, e.g. label count out of range
        print(f"ERROR: {e}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
