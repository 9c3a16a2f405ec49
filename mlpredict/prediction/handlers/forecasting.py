"""Forecasting handler.

Input is a JSON document ``{"horizon": 7, "input": {...}}``; both keys are
optional. The model returns a point-estimate series and its bounds, the
bounds being the output fields suffixed ``_LB`` and ``_UB``.
"""

from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from mlpredict.core.logging import get_logger
from mlpredict.errors import InputDataError, IntrospectionError
from mlpredict.prediction.capabilities import (
    LOWER_BOUND_SUFFIX,
    UPPER_BOUND_SUFFIX,
    BoundModel,
    Capability,
    EntrySymbol,
    read_output_field,
)
from mlpredict.prediction.formatting import PredictionTable
from mlpredict.prediction.handlers.base import (
    PredictionContext,
    PredictionRecord,
    PredictionResult,
    ScenarioHandler,
    register_handler,
)
from mlpredict.prediction.inputs import read_json_document
from mlpredict.prediction.materializer import RecordMaterializer
from mlpredict.runtime.manifest import FORECASTING

logger = get_logger(__name__)

HEADER = ["PredictedValue", "LowerBound", "UpperBound"]


def parse_horizon(document: Mapping[str, Any]) -> Optional[int]:
    """Read ``horizon`` as an int; strings holding an int are accepted.

    Raises:
        InputDataError: If the value is not an integer.
    """
    if "horizon" not in document or document["horizon"] is None:
        return None
    value = document["horizon"]
    if isinstance(value, bool):
        raise InputDataError(f"horizon must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise InputDataError(f"horizon must be an integer, got {value!r}") from e


def _field_names(output: Any, declared: Sequence[str]) -> List[str]:
    if isinstance(output, Mapping):
        return list(output.keys())
    if declared:
        return list(declared)
    return [name for name in vars(output) if not name.startswith("_")]


def split_series(output: Any, declared: Sequence[str] = ()) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Extract the value, lower-bound and upper-bound series of an output record.

    Raises:
        IntrospectionError: If any of the three series is missing.
    """
    values = lower = upper = None
    for name in _field_names(output, declared):
        series = read_output_field(output, name)
        if name.endswith(LOWER_BOUND_SUFFIX):
            lower = series
        elif name.endswith(UPPER_BOUND_SUFFIX):
            upper = series
        elif values is None:
            values = series
    if values is None or lower is None or upper is None:
        raise IntrospectionError("Forecast output must provide values plus _LB and _UB series")
    return (
        np.atleast_1d(np.asarray(values, dtype=float)),
        np.atleast_1d(np.asarray(lower, dtype=float)),
        np.atleast_1d(np.asarray(upper, dtype=float)),
    )


def _at(series: np.ndarray, i: int) -> Optional[float]:
    return float(series[i]) if i < len(series) else None


@register_handler
class ForecastingHandler(ScenarioHandler):
    """Multi-step forecast with confidence bounds."""
    scenarios = (FORECASTING,)
    priority = 30

    def check(self, symbol: EntrySymbol) -> None:
        self.require(symbol, Capability.VECTOR_WITH_BOUNDS)

    def run(self, model: BoundModel, context: PredictionContext) -> PredictionResult:
        document = read_json_document(context.input_path)
        horizon = parse_horizon(document)
        input_object = document.get("input")
        if input_object is not None and not isinstance(input_object, Mapping):
            raise InputDataError("'input' must be a JSON object")

        symbol = model.symbol
        record = RecordMaterializer(symbol.input_fields, symbol.input_type).from_mapping(input_object)
        output = model.predict(record, horizon)
        values, lower, upper = split_series(output, symbol.output_fields)
        if horizon is not None and len(values) != horizon:
            logger.warning(f"Requested horizon {horizon} but model returned {len(values)} step(s)")

        table = PredictionTable(list(HEADER))
        for i in range(len(values)):
            table.add_row([float(values[i]), _at(lower, i), _at(upper, i)])
        return PredictionResult(
            scenario=context.manifest.scenario,
            symbol=symbol.name,
            records=[PredictionRecord(record, output)],
            table=table,
            extras={"horizon": horizon},
        )
