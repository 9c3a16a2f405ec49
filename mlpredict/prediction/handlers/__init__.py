"""
Scenario handlers.

Importing this package registers every built-in handler.
"""

from .base import (
    HANDLER_REGISTRY,
    PredictionContext,
    PredictionRecord,
    PredictionResult,
    ScenarioHandler,
    TabularHandler,
    get_handler,
    map_ordered,
    register_handler,
    registered_scenarios,
)
from .classification import ClassificationHandler, build_classification_table
from .forecasting import ForecastingHandler, parse_horizon, split_series
from .image import ImageClassificationHandler, ObjectDetectionHandler
from .regression import RegressionHandler, score_of

__all__ = [
    "HANDLER_REGISTRY",
    "PredictionContext",
    "PredictionRecord",
    "PredictionResult",
    "ScenarioHandler",
    "TabularHandler",
    "get_handler",
    "map_ordered",
    "register_handler",
    "registered_scenarios",
    "ClassificationHandler",
    "build_classification_table",
    "ForecastingHandler",
    "parse_horizon",
    "split_series",
    "ImageClassificationHandler",
    "ObjectDetectionHandler",
    "RegressionHandler",
    "score_of",
]
