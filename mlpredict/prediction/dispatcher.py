"""
Prediction dispatcher.

Selects the handler for the manifest scenario, then walks the entry-symbol
candidates in order until one of them runs. Candidate-level failures
(missing type, missing capability, model exception) move on to the next
candidate; input and formatting errors abort immediately. When every
candidate fails, a single error lists each candidate with its reason.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

from mlpredict.core.logging import LogContext, get_logger
from mlpredict.errors import (
    EntrySymbolNotFoundError,
    IntrospectionError,
    ModelInvocationError,
    PredictionDispatchError,
    UnsupportedScenarioError,
)
from mlpredict.prediction.capabilities import CapabilityIntrospector
from mlpredict.prediction.handlers import PredictionContext, PredictionResult, get_handler, registered_scenarios
from mlpredict.prediction.inputs import delimiter_for
from mlpredict.runtime.manifest import normalize_scenario
from mlpredict.runtime.model_runtime import RuntimeCacheEntry

logger = get_logger(__name__)

FALLBACK_ERRORS = (EntrySymbolNotFoundError, IntrospectionError, ModelInvocationError)


def effective_delimiter(input_path: Union[str, Path], manifest_delimiter: str, separator: Optional[str] = None) -> str:
    """Explicit separator, else the one implied by the file extension, else the manifest's."""
    if separator:
        return separator
    return delimiter_for(input_path) or manifest_delimiter


class PredictionDispatcher:
    """Run a loaded artifact over an input.

    Attributes:
        introspector: Candidate introspector; shares its cache across runs.
        max_workers: Bound on concurrent model calls.
    """

    def __init__(self, introspector: Optional[CapabilityIntrospector] = None, max_workers: int = 4):
        self.introspector = introspector or CapabilityIntrospector()
        self.max_workers = max_workers

    def run(
        self,
        entry: RuntimeCacheEntry,
        input_path: Union[str, Path],
        has_header: Optional[bool] = None,
        separator: Optional[str] = None,
    ) -> PredictionResult:
        """Predict over ``input_path`` with the first candidate that works.

        Args:
            entry: Loaded artifact directory.
            input_path: Input file, or an image directory for image scenarios.
            has_header: Overrides the manifest's header flag when not None.
            separator: Overrides the delimiter when given.

        Returns:
            PredictionResult of the successful candidate. Its name is also
            recorded on ``entry.manifest.resolved_entry_symbol``.

        Raises:
            UnsupportedScenarioError: No handler serves the scenario.
            InputDataError: The input cannot be read or is empty.
            PredictionDispatchError: Every candidate failed.
        """
        manifest = entry.manifest
        scenario = normalize_scenario(manifest.scenario)
        handler = get_handler(scenario)
        if handler is None:
            raise UnsupportedScenarioError(manifest.raw_scenario, registered_scenarios())

        input_path = Path(input_path)
        context = PredictionContext(
            input_path=input_path,
            manifest=manifest,
            has_header=manifest.has_header if has_header is None else has_header,
            delimiter=effective_delimiter(input_path, manifest.delimiter, separator),
            max_workers=self.max_workers,
        )
        logger.debug(
            f"Dispatching {scenario} to {type(handler).__name__} "
            f"(has_header={context.has_header}, delimiter={context.delimiter!r})"
        )

        candidates = self._ordered_candidates(entry)
        attempts: List[Tuple[str, str]] = []
        with LogContext.scenario_of(scenario):
            for name in candidates:
                with LogContext.candidate(name):
                    try:
                        symbol = self.introspector.introspect(entry.unit, name)
                        handler.check(symbol)
                        model = symbol.bind(entry.weights_path)
                        result = handler.run(model, context)
                    except FALLBACK_ERRORS as e:
                        logger.debug(f"Candidate '{name}' failed: {e}")
                        attempts.append((name, str(e)))
                        continue

                if manifest.resolved_entry_symbol != name:
                    manifest.resolved_entry_symbol = name
                if attempts:
                    logger.info(f"Using entry symbol '{name}' after {len(attempts)} failed candidate(s)")
                else:
                    logger.debug(f"Using entry symbol '{name}'")
                return result

        raise PredictionDispatchError(scenario, attempts)

    @staticmethod
    def _ordered_candidates(entry: RuntimeCacheEntry) -> List[str]:
        # A symbol that already served this directory is tried first
        candidates = list(entry.candidates)
        resolved = entry.manifest.resolved_entry_symbol
        if resolved and resolved in candidates:
            candidates.remove(resolved)
            candidates.insert(0, resolved)
        return candidates
