"""
mlpredict - batch inference for trained model artifact bundles.

An artifact bundle is a directory holding a weights blob (``*.mlmodel``),
a Python descriptor source (``*.consumption.py``), a JSON manifest
(``*.mlconfig``) and optionally a ``requirements.txt``. mlpredict compiles
the descriptor in memory, locates the model class and runs it over a
tabular, JSON or image input, writing a scenario-specific CSV.

Example:
    >>> from mlpredict import predict
    >>> output = predict("models/HousePrice", "data/houses.csv")
    >>> print(output)
    data/houses-predicted.csv
"""

__version__ = "0.3.0"

from .api import predict
from .config import RuntimeConfig
from .errors import (
    AmbiguousArtifactError,
    ArtifactError,
    ArtifactNotFoundError,
    CompilationError,
    DependencyFetchWarning,
    DependencyResolutionError,
    EntrySymbolNotFoundError,
    InputDataError,
    IntrospectionError,
    ManifestError,
    MLPredictError,
    ModelInvocationError,
    PackageFetchError,
    PredictionDispatchError,
    RecordCoercionWarning,
    UnsupportedScenarioError,
)
from .runtime import ModelRuntime

__all__ = [
    "__version__",
    "predict",
    "ModelRuntime",
    "RuntimeConfig",
    # Errors
    "MLPredictError",
    "ArtifactError",
    "ArtifactNotFoundError",
    "AmbiguousArtifactError",
    "ManifestError",
    "DependencyResolutionError",
    "DependencyFetchWarning",
    "PackageFetchError",
    "CompilationError",
    "EntrySymbolNotFoundError",
    "IntrospectionError",
    "ModelInvocationError",
    "RecordCoercionWarning",
    "UnsupportedScenarioError",
    "InputDataError",
    "PredictionDispatchError",
]
