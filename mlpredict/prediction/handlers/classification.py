"""Classification and text-classification handler."""

from mlpredict.core.logging import get_logger
from mlpredict.prediction.capabilities import BoundModel, Capability, EntrySymbol
from mlpredict.prediction.formatting import PredictionTable
from mlpredict.prediction.handlers.base import (
    PredictionContext,
    PredictionRecord,
    PredictionResult,
    TabularHandler,
    map_ordered,
    register_handler,
)
from mlpredict.runtime.manifest import CLASSIFICATION, TEXT_CLASSIFICATION

logger = get_logger(__name__)

BINARY_HEADER = ["PredictedLabel", "Score"]
TOP_K = 3
MULTICLASS_HEADER = [name for k in range(1, TOP_K + 1) for name in (f"Top{k}", f"Top{k}Score")]


def build_classification_table(ranked_per_record) -> PredictionTable:
    """Format ranked predictions.

    The layout depends on how many distinct labels appear across the whole
    batch: exactly two gives ``PredictedLabel,Score``; anything else gives
    the top three labels with their scores, blank where a record has fewer.

    Args:
        ranked_per_record: One list of ``(label, score)`` pairs per record,
            sorted by descending score.
    """
    labels = {label for ranked in ranked_per_record for label, _ in ranked}
    if len(labels) == 2:
        table = PredictionTable(list(BINARY_HEADER))
        for ranked in ranked_per_record:
            table.add_row(ranked[0] if ranked else (None, None))
        return table

    table = PredictionTable(list(MULTICLASS_HEADER))
    for ranked in ranked_per_record:
        cells = []
        for k in range(TOP_K):
            cells.extend(ranked[k] if k < len(ranked) else (None, None))
        table.add_row(cells)
    return table


@register_handler
class ClassificationHandler(TabularHandler):
    """Ranked-label prediction over tabular or text rows."""
    scenarios = (CLASSIFICATION, TEXT_CLASSIFICATION)
    priority = 10

    def check(self, symbol: EntrySymbol) -> None:
        self.require(symbol, Capability.RANKED_LABELS)

    def run(self, model: BoundModel, context: PredictionContext) -> PredictionResult:
        records = self.load_records(model.symbol, context)
        ranked = map_ordered(model.ranked_labels, records, context.max_workers)
        table = build_classification_table(ranked)
        distinct = len({label for pairs in ranked for label, _ in pairs})
        logger.debug(f"{distinct} distinct label(s) across {len(records)} record(s)")
        return PredictionResult(
            scenario=context.manifest.scenario,
            symbol=model.symbol.name,
            records=[PredictionRecord(r, p) for r, p in zip(records, ranked)],
            table=table,
            extras={"classes": distinct},
        )
