"""Regression and recommendation handler: one ``Score`` per input row."""

from typing import Any, Optional

from mlpredict.errors import IntrospectionError
from mlpredict.prediction.capabilities import BoundModel, Capability, EntrySymbol, read_output_field
from mlpredict.prediction.formatting import PredictionTable, as_score, is_number
from mlpredict.prediction.handlers.base import (
    PredictionContext,
    PredictionRecord,
    PredictionResult,
    TabularHandler,
    map_ordered,
    register_handler,
)
from mlpredict.runtime.manifest import RECOMMENDATION, REGRESSION

SCORE_FIELD = "Score"

_MISSING = object()


def score_of(output: Any) -> Optional[float]:
    """``Score`` of an output record as a float; a bare number is its own score.

    NumPy scalars count as numbers. A ``Score`` of None stays None and renders
    as an empty cell.

    Raises:
        IntrospectionError: The output is not a number and has no ``Score``.
    """
    if is_number(output):
        return float(output)
    score = read_output_field(output, SCORE_FIELD, _MISSING)
    if score is _MISSING:
        raise IntrospectionError(
            f"Prediction output {type(output).__name__} has no '{SCORE_FIELD}' field"
        )
    return as_score(score)


@register_handler
class RegressionHandler(TabularHandler):
    """Scalar prediction for regression and recommendation."""
    scenarios = (REGRESSION, RECOMMENDATION)
    priority = 20

    def check(self, symbol: EntrySymbol) -> None:
        self.require(symbol, Capability.SCALAR)

    def run(self, model: BoundModel, context: PredictionContext) -> PredictionResult:
        records = self.load_records(model.symbol, context)
        outputs = map_ordered(model.predict, records, context.max_workers)
        table = PredictionTable([SCORE_FIELD])
        for output in outputs:
            table.add_row([score_of(output)])
        return PredictionResult(
            scenario=context.manifest.scenario,
            symbol=model.symbol.name,
            records=[PredictionRecord(r, o) for r, o in zip(records, outputs)],
            table=table,
        )
