"""
Main CLI entry point for mlpredict.
"""

import argparse
import sys

from mlpredict.core.logging import configure_logging, get_logger
from mlpredict.errors import MLPredictError

from .commands import add_preprocess_command, add_run_command

logger = get_logger(__name__)


def get_version():
    """Get the current version of mlpredict."""
    from importlib.metadata import PackageNotFoundError, version
    try:
        return version("mlpredict")
    except PackageNotFoundError:
        from .. import __version__
        return __version__


def build_parser():
    parser = argparse.ArgumentParser(
        prog='mlpredict',
        description='Run batch predictions with a trained model artifact bundle'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {get_version()}'
    )
    parser.add_argument(
        '-v', '--verbose',
        type=int,
        default=1,
        choices=[0, 1, 2],
        help='Verbosity: 0 = warnings only, 1 = progress, 2 = debug (default: 1)'
    )
    parser.add_argument(
        '--log-file',
        default=None,
        help='Also write a detailed log to this file'
    )
    parser.add_argument(
        '--json-log',
        action='store_true',
        help='Write the log file as JSON Lines'
    )

    subparsers = parser.add_subparsers(dest='command')
    add_run_command(subparsers)
    add_preprocess_command(subparsers)
    return parser


def format_error(error):
    """Error message plus its cause, when the cause adds information."""
    message = f"Error: {error}"
    cause = error.__cause__
    if cause is not None and str(cause) and str(cause) not in str(error):
        message += f"\nCause: {cause}"
    return message


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'func', None):
        parser.print_help()
        sys.exit(0)

    configure_logging(verbose=args.verbose, log_file=args.log_file, json_output=args.json_log)

    try:
        args.func(args)
    except (MLPredictError, ValueError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        print(format_error(e), file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
