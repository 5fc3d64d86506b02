import argparse
import logging
import os
import sys

from bindscan.errors import BindingMatrixError
from bindscan.io import read_matrices, read_sequences, write_matches
from bindscan.scanner import Scanner


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if verbose:
        logging.getLogger("numba").setLevel(logging.WARNING)


def create_arg_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="bindscan",
        description="Report every window of the input sequences whose relative affinity "
        "for a binding matrix reaches a threshold.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
 Examples:
   # All CTCF windows, any affinity
   bindscan CTCF.matrix CTCF_seqs.fa

   # Windows with relative affinity >= 0.8 on either strand
   bindscan CTCF.matrix CTCF_seqs.fa 0.8 --strand both

 Output columns (tab separated):
   sequence  start  end  matrix  site  score  [strand]
         """,
    )

    parser.add_argument("matrix_file", help="File with one or more PFMs (optional >NAME header + A, C, G, T rows).")
    parser.add_argument("sequence_file", help="FASTA-like file with the sequences to scan.")
    parser.add_argument(
        "threshold",
        nargs="?",
        type=float,
        default=0.0,
        help="Minimum relative affinity for a window to be reported. (default: %(default)s)",
    )

    scan_group = parser.add_argument_group("Scan Options")
    scan_group.add_argument(
        "--log-scale",
        action="store_true",
        help="Score on the log-odds scale instead of the linear scale.",
    )
    scan_group.add_argument(
        "--strand",
        choices=["+", "-", "both"],
        default="+",
        help="Strand(s) to scan; '-' uses the reverse-complement matrix. (default: %(default)s)",
    )
    scan_group.add_argument(
        "--limit",
        type=int,
        help="Stop after reporting this many matches.",
    )
    scan_group.add_argument(
        "--on-error",
        choices=["skip", "raise"],
        default="skip",
        help=(
            "What to do with malformed matrices and windows containing characters other than "
            "A, C, G, T: skip them with a warning, or abort. (default: %(default)s)"
        ),
    )

    technical_group = parser.add_argument_group("Technical Options")
    technical_group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging to standard error for detailed execution tracking.",
    )
    technical_group.add_argument(
        "--jobs",
        type=int,
        default=1,
        help=(
            "Number of parallel jobs across matrices. Set to -1 to use all available CPU cores. "
            "(default: %(default)s)"
        ),
    )

    return parser


def validate_inputs(args) -> None:
    """Validate input files and parameters."""
    logger = logging.getLogger(__name__)
    if not os.path.exists(args.matrix_file):
        logger.error(f"Matrix file not found: {args.matrix_file}")
        sys.exit(1)
    if not os.path.exists(args.sequence_file):
        logger.error(f"Sequence file not found: {args.sequence_file}")
        sys.exit(1)
    if args.limit is not None and args.limit < 0:
        logger.error(f"--limit must be non-negative, got {args.limit}")
        sys.exit(1)


def main_cli():
    """Main CLI entry point."""
    parser = create_arg_parser()

    if len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)

    args = parser.parse_args()

    setup_logging(args.verbose)
    validate_inputs(args)

    logger = logging.getLogger(__name__)
    logger.info(f"Matrices: {args.matrix_file}")
    logger.info(f"Sequences: {args.sequence_file}")
    logger.info(f"Threshold: {args.threshold} ({'log' if args.log_scale else 'linear'} scale)")

    try:
        matrices = read_matrices(args.matrix_file, on_error=args.on_error)
        sequences = read_sequences(args.sequence_file)
        scanner = Scanner(
            matrices,
            threshold=args.threshold,
            linear=not args.log_scale,
            strand=args.strand,
            n_jobs=args.jobs,
            on_error=args.on_error,
            limit=args.limit,
        )
        write_matches(scanner.scan(sequences), sys.stdout)

    except BindingMatrixError as e:
        logger.error(f"Invalid input: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"ERROR: Scan failed: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
