"""
Command-line interface for pgconverter.

Usage:
    pgconverter validate --mzid FILE --peak FILE_OR_DIR [--report FILE]
    pgconverter validate --pridexml FILE [--report FILE]
    pgconverter convert --input FILE --output FILE [--chrom-sizes FILE]
"""

import argparse
import logging
import sys
from typing import List, Optional

import toml

from . import __version__
from .config import PgConverterConfig, build_config
from .controllers import FileType
from .conversion import start_conversion
from .validation import run_validation

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging for the CLI."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        metavar="CONFIG_FILE",
        help="Path to TOML configuration file (CLI args override config values)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug output and progress bars")
    parser.add_argument("--quiet", "-q", action="store_true", help="Warnings and errors only")


def _add_input_arguments(group) -> None:
    group.add_argument("--mzid", type=str, default=None, help="mzIdentML file")
    group.add_argument("--pridexml", type=str, default=None, help="PRIDE XML file")
    group.add_argument("--mztab", type=str, default=None, help="mzTab file")


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser with the validate and convert subcommands."""
    epilog = """
Examples:
  pgconverter validate --mzid result.mzid --peak spectra.mgf --report result.report
  pgconverter validate --mzid result.mzid.gz --peaks "a.mgf##b.mzML" --skip-serialization
  pgconverter validate --pridexml experiment.xml --report experiment.report
  pgconverter convert --input result.mzid --output result.mztab
  pgconverter convert --mzid result.mzid --output-format probed --chrom-sizes hg38.chrom.sizes

Exit codes:
  0: Validation OK / conversion produced its output
  1: Validation reported an error / conversion produced no output
  2: Usage or configuration error
"""
    parser = argparse.ArgumentParser(
        prog="pgconverter",
        description="Validate and convert proteomics identification files (mzIdentML, PRIDE XML, mzTab, proBed).",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate an identification file")
    _add_common_arguments(validate)
    inputs = validate.add_argument_group("Input").add_mutually_exclusive_group(required=True)
    _add_input_arguments(inputs)
    peaks = validate.add_argument_group("Peak files")
    peaks.add_argument(
        "--peak",
        action="append",
        default=[],
        metavar="FILE_OR_DIR",
        help="Peak file (MGF / mzML) or directory of peak files; repeatable",
    )
    peaks.add_argument(
        "--peaks",
        type=str,
        default=None,
        metavar="LIST",
        help="'##'-separated list of peak files",
    )
    output = validate.add_argument_group("Output")
    output.add_argument("--report", type=str, default=None, help="Text report file")
    output.add_argument(
        "--skip-serialization",
        action="store_true",
        default=None,
        help="Do not write the serialized summary next to the report",
    )
    checks = validate.add_argument_group("Checks")
    checks.add_argument("--delta-mass-threshold", type=float, default=None,
                        help="Precursor delta m/z tolerance (default: 4.0)")
    checks.add_argument("--seed", type=int, default=None, dest="random_seed",
                        help="Seed of the randomized checks")

    convert = subparsers.add_parser("convert", help="Convert between formats")
    _add_common_arguments(convert)
    sources = convert.add_argument_group("Input").add_mutually_exclusive_group(required=True)
    sources.add_argument("--input", "-i", type=str, default=None, help="Input file (type detected from content)")
    _add_input_arguments(sources)
    targets = convert.add_argument_group("Output")
    targets.add_argument("--output", "-o", type=str, default=None, help="Output file")
    targets.add_argument(
        "--output-format",
        type=str,
        default=None,
        choices=["mztab", "probed", "bigbed"],
        help="Output format; the output path defaults to the input with this extension",
    )
    targets.add_argument("--chrom-sizes", type=str, default=None,
                         help="Chromosome sizes file used to sort and filter proBed output")
    return parser


def _load_config(args) -> PgConverterConfig:
    return build_config(
        args.config,
        verbose=args.verbose or None,
        skip_serialization=getattr(args, "skip_serialization", None),
        delta_mass_threshold=getattr(args, "delta_mass_threshold", None),
        random_seed=getattr(args, "random_seed", None),
    )


def run_validate(args, config: PgConverterConfig) -> int:
    if args.mzid:
        file_type, input_file = FileType.MZID, args.mzid
    elif args.pridexml:
        file_type, input_file = FileType.PRIDEXML, args.pridexml
    else:
        file_type, input_file = FileType.MZTAB, args.mztab

    peak_arguments: List[str] = list(args.peak)
    if args.peaks:
        peak_arguments.append(args.peaks)

    report = run_validation(file_type, input_file, peak_arguments, args.report, config)
    logger.info(f"Validation status of {input_file}: {report.status.splitlines()[0]}")
    return EXIT_OK if report.ok else EXIT_FAILED


def run_convert(args, config: PgConverterConfig) -> int:
    input_file = args.input or args.mzid or args.pridexml or args.mztab
    if args.output is None and args.output_format is None:
        logger.error("Either --output or --output-format is required")
        return EXIT_USAGE
    output_file = start_conversion(
        input_file,
        output_file=args.output,
        output_format=args.output_format,
        chrom_sizes_file=args.chrom_sizes,
        config=config,
    )
    return EXIT_OK if output_file is not None else EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point, returns exit code."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
    except (FileNotFoundError, KeyError, TypeError, toml.TomlDecodeError) as e:
        print(f"Error loading configuration file: {e}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(verbose=config.verbose, quiet=args.quiet)

    if args.command == "validate":
        return run_validate(args, config)
    return run_convert(args, config)


if __name__ == "__main__":
    sys.exit(main())
