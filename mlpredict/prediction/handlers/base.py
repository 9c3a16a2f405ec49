"""Base class and registry for scenario handlers."""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from mlpredict.core.logging import get_logger
from mlpredict.errors import InputDataError, IntrospectionError
from mlpredict.prediction.capabilities import BoundModel, Capability, EntrySymbol
from mlpredict.prediction.formatting import PredictionTable
from mlpredict.prediction.inputs import read_lines
from mlpredict.prediction.materializer import RecordMaterializer
from mlpredict.runtime.manifest import ScenarioManifest

logger = get_logger(__name__)


@dataclass
class PredictionContext:
    """Everything a handler needs besides the model.

    Attributes:
        input_path: Input file or image directory.
        manifest: Parsed manifest.
        has_header: Effective header flag (CLI override or manifest).
        delimiter: Effective delimiter (CLI, file extension, then manifest).
        max_workers: Bound on concurrent model calls.
    """
    input_path: Path
    manifest: ScenarioManifest
    has_header: bool = False
    delimiter: str = ","
    max_workers: int = 4


@dataclass
class PredictionRecord:
    """One input instance (a record, or an image path) and the model's raw output."""
    input: Any
    output: Any


@dataclass
class PredictionResult:
    """Outcome of a successful handler run."""
    scenario: str
    symbol: str
    records: List[PredictionRecord] = field(default_factory=list)
    table: PredictionTable = None
    extras: Dict[str, Any] = field(default_factory=dict)


class ScenarioHandler(ABC):
    """Base class for scenario handlers.

    A handler declares the scenario tags it serves and the capabilities it
    needs, and turns an input plus a bound model into a PredictionResult.
    """
    scenarios: Tuple[str, ...] = ()
    priority: int = 100

    @classmethod
    def matches(cls, scenario: str) -> bool:
        """Check if the handler serves the scenario tag."""
        return scenario in cls.scenarios

    @abstractmethod
    def check(self, symbol: EntrySymbol) -> None:
        """Raise IntrospectionError if ``symbol`` lacks what this handler needs."""
        raise NotImplementedError("Subclasses must implement this method.")

    @abstractmethod
    def run(self, model: BoundModel, context: PredictionContext) -> PredictionResult:
        """Predict over the whole input and build the output table."""
        raise NotImplementedError("Subclasses must implement this method.")

    def require(self, symbol: EntrySymbol, *capabilities: Capability) -> None:
        """Require at least one of ``capabilities``."""
        if not any(symbol.has(c) for c in capabilities):
            wanted = " or ".join(c.value for c in capabilities)
            found = ", ".join(sorted(c.value for c in symbol.capabilities)) or "none"
            raise IntrospectionError(f"'{symbol.name}' does not expose {wanted} (has: {found})")


class TabularHandler(ScenarioHandler):
    """Shared input path for handlers that read delimited rows."""

    def load_records(self, symbol: EntrySymbol, context: PredictionContext) -> List[Any]:
        materializer = RecordMaterializer(symbol.input_fields, symbol.input_type)
        records = materializer.materialize(read_lines(context.input_path), context.has_header, context.delimiter)
        if not records:
            raise InputDataError(f"Input {context.input_path.name} contains no data rows")
        logger.debug(f"Materialized {len(records)} record(s) for {symbol.name}")
        return records


def map_ordered(fn: Callable[[Any], Any], items: Sequence[Any], max_workers: int) -> List[Any]:
    """Apply ``fn`` to every item concurrently, returning results in input order.

    The first exception raised by ``fn`` propagates.
    """
    if max_workers <= 1 or len(items) <= 1:
        return [fn(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items)), thread_name_prefix="mlpredict") as pool:
        return list(pool.map(fn, items))


HANDLER_REGISTRY: List[Type[ScenarioHandler]] = []


def register_handler(handler_cls: Type[ScenarioHandler]) -> Type[ScenarioHandler]:
    """Decorator to register a handler class."""
    HANDLER_REGISTRY.append(handler_cls)
    HANDLER_REGISTRY.sort(key=lambda c: c.priority)
    logger.debug(f"Registered handler {handler_cls.__name__} for {handler_cls.scenarios}")
    return handler_cls


def get_handler(scenario: str) -> Optional[ScenarioHandler]:
    """Instantiate the highest-priority handler serving ``scenario``."""
    for handler_cls in HANDLER_REGISTRY:
        if handler_cls.matches(scenario):
            return handler_cls()
    return None


def registered_scenarios() -> List[str]:
    scenarios: List[str] = []
    for handler_cls in HANDLER_REGISTRY:
        for scenario in handler_cls.scenarios:
            if scenario not in scenarios:
                scenarios.append(scenario)
    return scenarios
