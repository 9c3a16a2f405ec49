"""
``mlpredict run``: predict over an input with an artifact bundle.
"""

from mlpredict.config import RuntimeConfig
from mlpredict.core.logging import get_logger

logger = get_logger(__name__)


def parse_bool(value):
    """argparse type for ``true|false`` flags."""
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValueError(f"expected true or false, got '{value}'")

parse_bool.__name__ = "true|false"


def load_config(args) -> RuntimeConfig:
    """Build the RuntimeConfig from ``--config`` and command-line overrides."""
    config = RuntimeConfig.from_yaml(args.config) if args.config else RuntimeConfig()
    return config.with_overrides(
        max_workers=args.max_workers,
        dependency_policy="strict" if args.strict_dependencies else None,
        wheelhouse=args.wheelhouse,
    )


def run_command(args):
    """Run a prediction and print the output path."""
    from mlpredict.api import predict

    config = load_config(args)
    output = predict(
        args.model_dir,
        args.input_path,
        output_path=args.output_path,
        has_header=args.has_header,
        separator=_unescape(args.separator),
        config=config,
    )
    print(f"Predictions saved to: {output}")


def _unescape(separator):
    # Shells make a literal tab awkward to pass
    if separator in ("\\t", "tab"):
        return "\t"
    return separator


def add_run_command(subparsers):
    """Add the run command to the CLI."""
    run_parser = subparsers.add_parser(
        'run',
        help='Predict over an input file or image directory'
    )
    run_parser.add_argument(
        'model_dir',
        metavar='model-dir',
        help='Directory containing the .mlmodel, .consumption.py and .mlconfig files'
    )
    run_parser.add_argument(
        'input_path',
        metavar='input-path',
        help='Input file (CSV/TSV/JSON) or image file/directory'
    )
    run_parser.add_argument(
        '-o', '--output-path',
        default=None,
        help='Output file or directory (default: the input directory)'
    )
    run_parser.add_argument(
        '--has-header',
        type=parse_bool,
        default=None,
        help='Whether the input has a header row [true|false] (default: from the manifest)'
    )
    run_parser.add_argument(
        '--separator',
        default=None,
        help='Input column separator (default: from the file extension, then the manifest)'
    )
    run_parser.add_argument(
        '--config',
        default=None,
        help='Runtime configuration file (YAML or JSON)'
    )
    run_parser.add_argument(
        '--max-workers',
        type=int,
        default=None,
        help='Maximum concurrent model calls'
    )
    run_parser.add_argument(
        '--wheelhouse',
        default=None,
        help='Fetch build dependencies from this directory of wheels instead of the index'
    )
    run_parser.add_argument(
        '--strict-dependencies',
        action='store_true',
        help='Fail instead of skipping build dependencies that cannot be fetched'
    )
    run_parser.set_defaults(func=run_command)
