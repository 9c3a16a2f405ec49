"""
Output formatting and writing.

Real numbers render in fixed-point with six decimals, integers and other
values through ``str()``, sequences as ``;``-joined cells, and missing
values as the empty string. Score columns go through :func:`as_score` so an
integer score still renders with six decimals. Tables are written with pandas.
"""

import numbers
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from mlpredict.core.logging import get_logger

logger = get_logger(__name__)

DECIMALS = 6
OUTPUT_SUFFIX = "-predicted.csv"
MULTI_VALUE_SEPARATOR = ";"


def format_value(value: Any) -> str:
    """Render one output cell.

    Examples:
        >>> format_value(3.14159265)
        '3.141593'
        >>> format_value(None)
        ''
        >>> format_value([0.5, 1])
        '0.500000;1'
    """
    if value is None:
        return ""
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (numbers.Integral, np.integer)):
        return str(int(value))
    if isinstance(value, (numbers.Real, np.floating)):
        return f"{float(value):.{DECIMALS}f}"
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, np.ndarray):
        value = value.ravel().tolist()
    if isinstance(value, (list, tuple)):
        return MULTI_VALUE_SEPARATOR.join(format_value(v) for v in value)
    return str(value)


def is_number(value: Any) -> bool:
    """True for real numbers, NumPy scalars included, but not for booleans."""
    if isinstance(value, (bool, np.bool_)):
        return False
    return isinstance(value, (numbers.Real, np.integer, np.floating))


def as_score(value: Any) -> Any:
    """Scores render like reals even when the model returns an integer."""
    return float(value) if is_number(value) else value


@dataclass
class PredictionTable:
    """Header plus rows of already formatted cells."""
    header: List[str]
    rows: List[List[str]] = field(default_factory=list)

    def add_row(self, values: Sequence[Any]) -> None:
        self.rows.append([format_value(v) for v in values])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.header, dtype=str)

    def __len__(self) -> int:
        return len(self.rows)


def resolve_output_path(input_path: Union[str, Path], output_path: Optional[Union[str, Path]] = None) -> Path:
    """Decide where predictions are written.

    Args:
        input_path: The input file or image directory.
        output_path: Explicit file path, or a directory. A path without an
            extension is treated as a directory. None means the directory
            containing the input, for image directories too.

    Returns:
        The output file path, ``<dir>/<input-stem>-predicted.csv`` when a
        directory was given.
    """
    input_path = Path(input_path)
    if input_path.is_dir():
        # "." has no stem until resolved
        input_path = input_path.resolve()
    default_name = f"{input_path.stem}{OUTPUT_SUFFIX}"
    if output_path is None:
        return input_path.parent / default_name
    output_path = Path(output_path)
    if output_path.suffix == "" or output_path.is_dir():
        return output_path / default_name
    return output_path


def write_table(table: PredictionTable, path: Union[str, Path]) -> Path:
    """Write ``table`` as CSV, creating parent directories.

    Returns:
        The written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_frame().to_csv(path, index=False, lineterminator="\n")
    logger.info(f"Wrote {len(table)} row(s) to {path}")
    return path
