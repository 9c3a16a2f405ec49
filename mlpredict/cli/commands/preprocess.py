"""
``mlpredict preprocess``: select and reorder input columns.
"""


def preprocess_command(args):
    """Select columns and print the output path."""
    from mlpredict.preprocess import parse_column_spec, select_columns

    output = select_columns(args.input, args.output, parse_column_spec(args.cols))
    print(f"File processed successfully: {output}")


def add_preprocess_command(subparsers):
    """Add the preprocess command to the CLI."""
    preprocess_parser = subparsers.add_parser(
        'preprocess',
        help='Select and reorder columns of a delimited file'
    )
    preprocess_parser.add_argument('input', help='Input file path')
    preprocess_parser.add_argument(
        'output',
        help='Output file path (relative paths resolve against the input directory)'
    )
    preprocess_parser.add_argument(
        '-c', '--cols',
        default=None,
        help='Columns to include and reorder (comma-separated names or 1-based indexes)'
    )
    preprocess_parser.set_defaults(func=preprocess_command)
