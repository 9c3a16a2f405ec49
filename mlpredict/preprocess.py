"""
Column selection for prediction inputs.

Training exports often carry more columns than the model consumes, or in a
different order. ``select_columns`` keeps and reorders columns by header
name or by 1-based position before the file is fed to ``predict``.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd

from mlpredict.core.logging import get_logger
from mlpredict.errors import InputDataError
from mlpredict.prediction.inputs import delimiter_for

logger = get_logger(__name__)


def parse_column_spec(spec: Optional[str]) -> List[str]:
    """Split a comma-separated ``-c`` value, dropping blanks."""
    if not spec:
        return []
    return [part.strip() for part in spec.split(",") if part.strip()]


def column_indices(header: Sequence[str], columns: Sequence[str]) -> List[int]:
    """Resolve names or 1-based positions to 0-based column indexes.

    An empty ``columns`` keeps every column in its original order.

    Raises:
        InputDataError: If a name is not in the header or a position is out of range.
    """
    if not columns:
        return list(range(len(header)))
    indices = []
    for column in columns:
        if column.isdigit():
            index = int(column) - 1
            if not 0 <= index < len(header):
                raise InputDataError(f"Column index {column} is out of range (1-{len(header)})")
            indices.append(index)
        elif column in header:
            indices.append(list(header).index(column))
        else:
            raise InputDataError(f"Column '{column}' not found in headers.")
    return indices


def select_columns(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    columns: Sequence[str] = (),
) -> Path:
    """Write a copy of ``input_path`` restricted to ``columns``.

    Args:
        input_path: Delimited file with a header row (``.tsv`` is tab-separated,
            anything else comma-separated).
        output_path: Destination CSV. Relative paths resolve against the
            input file's directory.
        columns: Header names or 1-based positions, in output order.

    Returns:
        The written path.
    """
    input_path = Path(input_path)
    output_path = Path(output_path)
    if not output_path.is_absolute():
        output_path = input_path.parent / output_path
    if not input_path.is_file():
        raise InputDataError(f"Input file not found: {input_path}")

    frame = pd.read_csv(
        input_path,
        sep=delimiter_for(input_path) or ",",
        dtype=str,
        keep_default_na=False,
    )
    indices = column_indices([str(c) for c in frame.columns], columns)
    selected = frame.iloc[:, indices]

    output_path.parent.mkdir(parents=True, exist_ok=True)
    selected.to_csv(output_path, index=False, lineterminator="\n")
    logger.info(f"Wrote {len(selected)} row(s) x {len(indices)} column(s) to {output_path}")
    return output_path
