"""
Record materialization: raw delimited text or JSON objects to typed records.

Header names are sanitized (anything outside ``[A-Za-z0-9_]`` becomes ``_``)
and matched to schema fields ignoring case; when that fails, underscores
are ignored too, so ``"User Id"`` feeds field ``UserId``. Fields with no
matching column take their type's zero value.

Coercion is best-effort: a cell that cannot be parsed becomes the zero value
and a :class:`RecordCoercionWarning` is emitted. One bad cell never aborts
the batch.
"""

import csv
import dataclasses
import re
import warnings
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from mlpredict.core.logging import get_logger
from mlpredict.errors import RecordCoercionWarning
from mlpredict.prediction.capabilities import FieldSpec

logger = get_logger(__name__)

ZERO_VALUES: Dict[str, Any] = {
    "str": "",
    "int": 0,
    "float": 0.0,
    "bool": False,
    "bytes": b"",
}

TRUE_STRINGS = ("true", "1", "yes", "y", "t")
FALSE_STRINGS = ("false", "0", "no", "n", "f")

_INVALID_HEADER_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_header(name: str) -> str:
    """Replace characters outside ``[A-Za-z0-9_]`` with ``_``: ``"User Id" -> "User_Id"``."""
    return _INVALID_HEADER_CHARS.sub("_", name.strip())


def zero_value(kind: str) -> Any:
    return ZERO_VALUES.get(kind, "")


def match_columns(header: Sequence[str], fields: Sequence[FieldSpec]) -> Dict[str, int]:
    """Map field names to column indexes.

    Args:
        header: Raw header cells.
        fields: Input schema.

    Returns:
        ``{field_name: column_index}`` for every field that has a column.
    """
    sanitized = [sanitize_header(h).lower() for h in header]
    compact = [s.replace("_", "") for s in sanitized]
    mapping: Dict[str, int] = {}
    for spec in fields:
        key = spec.name.lower()
        if key in sanitized:
            mapping[spec.name] = sanitized.index(key)
        elif key.replace("_", "") in compact:
            mapping[spec.name] = compact.index(key.replace("_", ""))
    return mapping


def coerce(value: Any, kind: str, field_name: str = "", location: str = "") -> Any:
    """Convert a raw cell to ``kind``, substituting the zero value on failure.

    Strings pass through verbatim. Empty numeric cells are treated as missing
    and become zero silently; unparsable cells also become zero but warn.
    """
    if kind == "str":
        return "" if value is None else str(value)
    if kind == "bytes":
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        return b"" if value is None else str(value).encode("utf-8")
    if value is None:
        return zero_value(kind)
    if kind == "bool" and isinstance(value, bool):
        return value
    if kind in ("int", "float") and isinstance(value, (int, float)) and not isinstance(value, bool):
        return _to_number(value, kind)

    text = str(value).strip()
    if text == "":
        return zero_value(kind)
    try:
        if kind == "bool":
            lowered = text.lower()
            if lowered in TRUE_STRINGS:
                return True
            if lowered in FALSE_STRINGS:
                return False
            raise ValueError(text)
        return _to_number(text, kind)
    except (ValueError, OverflowError):
        zero = zero_value(kind)
        where = f" ({location})" if location else ""
        warnings.warn(
            f"Cannot parse {text!r} as {kind} for field '{field_name}'{where}; using {zero!r}",
            RecordCoercionWarning,
            stacklevel=3,
        )
        return zero


def _to_number(value: Any, kind: str) -> Any:
    if kind == "float":
        return float(value)
    try:
        return int(value)
    except ValueError:
        number = float(value)
        if not number.is_integer():
            raise
        return int(number)


def build_record(record_type: Optional[type], values: Dict[str, Any]) -> Any:
    """Instantiate ``record_type`` with ``values``; a plain dict when no type is given."""
    if record_type is None:
        return dict(values)
    if dataclasses.is_dataclass(record_type):
        init_names = {f.name for f in dataclasses.fields(record_type) if f.init}
        record = record_type(**{k: v for k, v in values.items() if k in init_names})
        for name, value in values.items():
            if name not in init_names:
                setattr(record, name, value)
        return record
    record = record_type()
    for name, value in values.items():
        setattr(record, name, value)
    return record


class RecordMaterializer:
    """Turn raw input into typed records for one input schema.

    Attributes:
        fields: Ordered input schema.
        record_type: Class to instantiate per record; dicts when None.
    """

    def __init__(self, fields: Sequence[FieldSpec], record_type: Optional[type] = None):
        self.fields = list(fields)
        self.record_type = record_type

    def parse_rows(self, raw_lines: Iterable[str], delimiter: str) -> List[List[str]]:
        """Split lines into cells, honouring quotes; blank lines are dropped."""
        lines = [line for line in raw_lines if line.strip()]
        if len(delimiter) == 1:
            return [row for row in csv.reader(lines, delimiter=delimiter)]
        return [line.split(delimiter) for line in lines]

    def materialize(self, raw_lines: Iterable[str], has_header: bool, delimiter: str = ",") -> List[Any]:
        """Materialize delimited lines.

        Args:
            raw_lines: Input lines, header first when ``has_header``.
            has_header: Whether the first line names the columns.
            delimiter: Column delimiter.

        Returns:
            One record per data line, in input order.
        """
        rows = self.parse_rows(raw_lines, delimiter)
        if has_header:
            if not rows:
                return []
            header, rows = rows[0], rows[1:]
            columns = match_columns(header, self.fields)
            unmatched = [f.name for f in self.fields if f.name not in columns]
            if unmatched:
                logger.debug(f"No input column for field(s) {unmatched}; using zero values")
        else:
            columns = {spec.name: i for i, spec in enumerate(self.fields)}

        records = []
        for line_number, row in enumerate(rows, 2 if has_header else 1):
            values = {}
            for spec in self.fields:
                index = columns.get(spec.name)
                if index is None or index >= len(row):
                    values[spec.name] = zero_value(spec.kind)
                else:
                    values[spec.name] = coerce(row[index], spec.kind, spec.name, f"line {line_number}")
            records.append(build_record(self.record_type, values))
        return records

    def from_mapping(self, mapping: Optional[Mapping[str, Any]]) -> Any:
        """Build one record from a JSON object, matching keys like header names."""
        mapping = mapping or {}
        keys = list(mapping.keys())
        columns = match_columns(keys, self.fields)
        values = {}
        for spec in self.fields:
            index = columns.get(spec.name)
            if index is None:
                values[spec.name] = zero_value(spec.kind)
            else:
                values[spec.name] = coerce(mapping[keys[index]], spec.kind, spec.name, "input object")
        return build_record(self.record_type, values)


def materialize(
    raw_lines: Iterable[str],
    fields: Sequence[FieldSpec],
    has_header: bool,
    delimiter: str = ",",
    record_type: Optional[type] = None,
) -> List[Any]:
    """Shortcut for ``RecordMaterializer(fields, record_type).materialize(...)``."""
    return RecordMaterializer(fields, record_type).materialize(raw_lines, has_header, delimiter)
