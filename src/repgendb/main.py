"""Command-line interface for RepGenDB."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from repgendb.utils.config import (
    load_configuration, create_default_configuration, save_configuration
)
from repgendb.core.exceptions import RepGenError


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the RepGenDB CLI."""
    parser = argparse.ArgumentParser(
        prog='repgendb',
        description='RepGenDB: seed-protein representative genome selection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Select representatives at similarity threshold 50
  repgendb build seeds.faa output/ --threshold 50

  # Find the closest representative of each query protein
  repgendb query output/rep50.ser queries.faa --output reps.tsv

  # Generate config template
  repgendb --init-config config.yaml
        """.strip()
    )

    parser.add_argument('--init-config', type=Path, metavar='FILE',
                        help='Create default configuration file and exit')
    parser.add_argument('--version', action='version', version='RepGenDB 1.0.0')

    subparsers = parser.add_subparsers(dest='command')

    # Options shared by all commands
    common = argparse.ArgumentParser(add_help=False)
    common_group = common.add_argument_group('Core options')
    common_group.add_argument('--config', '-c', type=Path,
                              help='Configuration file (YAML or JSON)')
    common_group.add_argument('--threads', '-t', type=int, metavar='INT',
                              help='Number of scan threads (default: 4)')
    common_group.add_argument('--verbose', '-v', action='store_true',
                              help='Enable verbose output')
    common_group.add_argument(
        '--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='INFO',
        help='Logging verbosity level (default: INFO)')

    build = subparsers.add_parser(
        'build', parents=[common],
        help='Select representative genomes from seed proteins')
    build.add_argument('seeds', type=Path,
                       help='FASTA file of seed proteins (ID = feature ID, comment = genome name)')
    build.add_argument('output_dir', type=Path,
                       help='Output directory for the index and reports')
    index_group = build.add_argument_group('Index parameters')
    index_group.add_argument('--threshold', type=int, metavar='INT',
                             help='Minimum similarity for two genomes to be redundant (default: 100)')
    index_group.add_argument('--kmer-size', '-K', type=int, metavar='INT',
                             help='Protein k-mer size (default: 8)')
    index_group.add_argument('--protein-name', type=str, metavar='ROLE',
                             help='Functional role of the seed protein')
    index_group.add_argument('--protein-alias', action='append', metavar='ROLE',
                             help='Alternate name of the seed protein (may be repeated)')
    output_group = build.add_argument_group('Output parameters')
    output_group.add_argument('--fasta', action='store_true',
                              help='Write the representative seed proteins in FASTA format')
    output_group.add_argument('--matrix', action='store_true',
                              help='Write the pairwise similarity matrix of the representatives')
    build.add_argument('--no-validate', action='store_true',
                       help='Skip input validation for faster startup')

    query = subparsers.add_parser(
        'query', parents=[common],
        help='Find the closest representative of each query protein')
    query.add_argument('index_file', type=Path, help='Saved representative-genome index')
    query.add_argument('queries', type=Path, help='FASTA file of query seed proteins')
    query.add_argument('--output', '-o', type=Path, default=Path('representation.tsv'),
                       help='Output table (default: %(default)s)')
    query.add_argument('--represented-only', action='store_true',
                       help='Only report queries that reach the index threshold')

    return parser


def cli(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.init_config:
            _handle_init_config(args.init_config)
            return

        if args.command is None:
            print("Error: a command (build or query) is required", file=sys.stderr)
            print("Use --help to see all available options", file=sys.stderr)
            sys.exit(1)

        if args.config:
            if not args.config.exists():
                print(f"Error: Configuration file does not exist: {args.config}", file=sys.stderr)
                sys.exit(1)
            config = load_configuration(args.config)
            print(f"Loaded configuration from {args.config}")
        else:
            config = create_default_configuration()
            if args.verbose:
                print("Using default configuration")

        _apply_cli_overrides(config, args)

        if args.command == 'build':
            _handle_build(args, config)
        else:
            _handle_query(args, config)

    except RepGenError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if getattr(args, 'verbose', False):
            import traceback
            traceback.print_exc()
        sys.exit(1)


def _handle_init_config(output_path: Path) -> None:
    """Handle --init-config mode."""
    config = create_default_configuration()
    save_configuration(config, output_path)
    print(f"Created default configuration: {output_path}")


def _handle_build(args: argparse.Namespace, config: dict) -> None:
    """Handle the build command."""
    from repgendb.pipeline import build_representative_index

    if not args.seeds.exists():
        print(f"Error: Seed-protein file does not exist: {args.seeds}", file=sys.stderr)
        sys.exit(1)

    print("Selecting representative genomes...")
    print(f"  Seed proteins: {args.seeds}")
    print(f"  Output directory: {args.output_dir}")

    results = build_representative_index(
        fasta_file=args.seeds,
        output_dir=args.output_dir,
        config=config,
        validate_inputs=not args.no_validate,
        log_level=args.log_level
    )

    print("Index built successfully!")
    print(f"Selected {results['n_representatives']} representative genomes")
    print(f"Index saved to {results['index_file']}")


def _handle_query(args: argparse.Namespace, config: dict) -> None:
    """Handle the query command."""
    from repgendb.pipeline import find_representatives, setup_logging

    log_file = config.get("logging", {}).get("file")
    setup_logging(args.log_level, Path(log_file) if log_file else None)
    results = find_representatives(
        index_file=args.index_file,
        fasta_file=args.queries,
        output_file=args.output,
        config=config
    )

    print(f"{results['n_represented']} of {results['n_queries']} queries are represented")
    print(f"Results saved to: {results['output_file']}")


def _apply_cli_overrides(config: dict, args: argparse.Namespace) -> None:
    """Apply CLI parameter overrides to configuration."""
    if args.threads is not None:
        config.setdefault('resources', {})['threads'] = args.threads
    config.setdefault('logging', {})['level'] = args.log_level

    if args.command == 'build':
        if args.threshold is not None:
            config.setdefault('index', {})['threshold'] = args.threshold
        if args.kmer_size is not None:
            config.setdefault('kmers', {})['size'] = args.kmer_size
        if args.protein_name is not None:
            config.setdefault('index', {})['protein_name'] = args.protein_name
        if args.protein_alias:
            config.setdefault('index', {})['protein_aliases'] = list(args.protein_alias)
        if args.fasta:
            config.setdefault('output', {})['fasta'] = True
        if args.matrix:
            config.setdefault('output', {})['similarity_matrix'] = True
    elif args.command == 'query':
        if args.represented_only:
            config.setdefault('output', {})['represented_only'] = True


if __name__ == '__main__':
    cli()
