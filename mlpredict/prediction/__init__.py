"""
Prediction: introspect candidates, materialize input, run handlers, format output.
"""

from .capabilities import (
    BoundModel,
    Capability,
    CapabilityIntrospector,
    EntrySymbol,
    FieldSpec,
)
from .dispatcher import PredictionDispatcher, effective_delimiter
from .formatting import PredictionTable, as_score, format_value, resolve_output_path, write_table
from .handlers import PredictionContext, PredictionRecord, PredictionResult, ScenarioHandler
from .materializer import RecordMaterializer, materialize, sanitize_header

__all__ = [
    "BoundModel",
    "Capability",
    "CapabilityIntrospector",
    "EntrySymbol",
    "FieldSpec",
    "PredictionDispatcher",
    "effective_delimiter",
    "PredictionTable",
    "as_score",
    "format_value",
    "resolve_output_path",
    "write_table",
    "PredictionContext",
    "PredictionRecord",
    "PredictionResult",
    "ScenarioHandler",
    "RecordMaterializer",
    "materialize",
    "sanitize_header",
]
