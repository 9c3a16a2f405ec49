"""
Public entry point: load an artifact directory and predict over an input.
"""

import time
from pathlib import Path
from typing import Optional, Union

from mlpredict.config import RuntimeConfig
from mlpredict.core.logging import LogContext, format_duration, get_logger
from mlpredict.prediction import PredictionDispatcher, resolve_output_path, write_table
from mlpredict.prediction.handlers import PredictionResult
from mlpredict.runtime import ModelRuntime

logger = get_logger(__name__)


def run_prediction(
    model_dir: Union[str, Path],
    input_path: Union[str, Path],
    has_header: Optional[bool] = None,
    separator: Optional[str] = None,
    runtime: Optional[ModelRuntime] = None,
    dispatcher: Optional[PredictionDispatcher] = None,
) -> PredictionResult:
    """Load ``model_dir`` (cached) and predict over ``input_path`` without writing.

    Args:
        model_dir: Artifact directory.
        input_path: Input file or image directory.
        has_header: Overrides the manifest's header flag.
        separator: Overrides the input delimiter.
        runtime: ModelRuntime to load with; a default one when None.
        dispatcher: Dispatcher to run with; built from the runtime config when None.

    Returns:
        PredictionResult with the formatted table.
    """
    runtime = runtime or ModelRuntime()
    dispatcher = dispatcher or PredictionDispatcher(max_workers=runtime.config.max_workers)
    entry = runtime.load(model_dir)
    return dispatcher.run(entry, input_path, has_header=has_header, separator=separator)


def predict(
    model_dir: Union[str, Path],
    input_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    has_header: Optional[bool] = None,
    separator: Optional[str] = None,
    runtime: Optional[ModelRuntime] = None,
    config: Optional[RuntimeConfig] = None,
) -> Path:
    """Predict over ``input_path`` and write the scenario's CSV output.

    Args:
        model_dir: Artifact directory.
        input_path: Input file or image directory.
        output_path: Output file, or a directory (any path without an
            extension). Defaults to the directory containing the input.
        has_header: Overrides the manifest's header flag.
        separator: Overrides the input delimiter.
        runtime: ModelRuntime to use. Pass one to share its caches.
        config: Settings for a new ModelRuntime; ignored when ``runtime`` is given.

    Returns:
        Path of the written CSV file.

    Example:
        >>> predict("models/Churn", "data/customers.csv", output_path="out")
        PosixPath('out/customers-predicted.csv')
    """
    runtime = runtime or ModelRuntime(config=config)
    started = time.perf_counter()
    with LogContext(model_dir=str(model_dir)):
        result = run_prediction(model_dir, input_path, has_header, separator, runtime=runtime)
        destination = resolve_output_path(input_path, output_path)
        write_table(result.table, destination)
        logger.info(
            f"Predictions by '{result.symbol}' ({result.scenario}) saved to {destination} "
            f"in {format_duration(time.perf_counter() - started)}"
        )
        return destination
