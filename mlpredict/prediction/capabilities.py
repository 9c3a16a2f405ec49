"""
Capability introspection for entry-symbol candidates.

A candidate is a class from the compiled unit. Introspection reads its
nested ``ModelInput`` record to get the ordered input schema, reads the
nested ``ModelOutput`` record for output field names, and classifies the
prediction methods it exposes into a set of :class:`Capability` values.
Handlers then check for the capability they need, so no handler ever calls
a method it has not been told exists.

Descriptor convention::

    class HousePrice:
        MODEL_PATH = None               # bound to the weights blob before use

        @dataclass
        class ModelInput:
            Age: int = 0
            Income: float = 0.0

        @dataclass
        class ModelOutput:
            Score: float = 0.0

        @classmethod
        def predict(cls, record): ...
"""

import dataclasses
import inspect
import numbers
import sys
import threading
import types
import typing
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from mlpredict.core.logging import get_logger
from mlpredict.errors import EntrySymbolNotFoundError, IntrospectionError, ModelInvocationError
from mlpredict.runtime.compiler import CompiledUnit
from mlpredict.runtime.entry_symbol import INPUT_TYPE_NAME, OUTPUT_TYPE_NAME

logger = get_logger(__name__)

MODEL_PATH_ATTRIBUTE = "MODEL_PATH"
PREDICT_METHOD = "predict"
RANKED_METHOD = "predict_all_labels"
HORIZON_PARAMETER = "horizon"
LOWER_BOUND_SUFFIX = "_LB"
UPPER_BOUND_SUFFIX = "_UB"
BOUNDING_BOXES_FIELD = "PredictedBoundingBoxes"

FIELD_KINDS = ("str", "int", "float", "bool", "bytes")


class Capability(Enum):
    """Prediction shapes a model class can expose."""
    RANKED_LABELS = "ranked-labels"
    SCALAR = "scalar"
    VECTOR_WITH_BOUNDS = "vector-with-bounds"
    IMAGE_LABEL = "image-label"
    DETECTION = "detection"


@dataclass(frozen=True)
class FieldSpec:
    """One input field: its name and coercion kind (``str|int|float|bool|bytes``)."""
    name: str
    kind: str = "str"


@dataclass(frozen=True)
class EntrySymbol:
    """An introspected candidate.

    Attributes:
        name: Candidate name.
        model_type: The model class.
        input_type: Nested input record class, or None.
        input_fields: Ordered input schema.
        output_type: Nested output record class, or None.
        output_fields: Output field names, in declaration order.
        capabilities: Prediction shapes the class exposes.
        accepts_horizon: ``predict`` takes a ``horizon`` argument.
    """
    name: str
    model_type: type = field(compare=False)
    input_type: Optional[type] = field(default=None, compare=False)
    input_fields: Tuple[FieldSpec, ...] = ()
    output_type: Optional[type] = field(default=None, compare=False)
    output_fields: Tuple[str, ...] = ()
    capabilities: FrozenSet[Capability] = frozenset()
    accepts_horizon: bool = False

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def image_field(self) -> Optional[str]:
        """First ``bytes`` input field; where image content is placed."""
        for spec in self.input_fields:
            if spec.kind == "bytes":
                return spec.name
        return None

    def bind(self, weights_path: Union[str, Path]) -> "BoundModel":
        """Point the class at its weights and resolve callable prediction methods.

        Sets ``MODEL_PATH`` on the class, and on its module when the module
        declares one. Instance methods get a single shared instance.

        Raises:
            ModelInvocationError: If the class cannot be instantiated.
        """
        weights = str(weights_path)
        setattr(self.model_type, MODEL_PATH_ATTRIBUTE, weights)
        module = sys.modules.get(self.model_type.__module__)
        if module is not None and hasattr(module, MODEL_PATH_ATTRIBUTE):
            setattr(module, MODEL_PATH_ATTRIBUTE, weights)

        instance = None
        methods: Dict[str, Callable] = {}
        for method in (PREDICT_METHOD, RANKED_METHOD):
            try:
                raw = inspect.getattr_static(self.model_type, method)
            except AttributeError:
                continue
            if isinstance(raw, (staticmethod, classmethod)):
                methods[method] = getattr(self.model_type, method)
                continue
            if instance is None:
                try:
                    instance = self.model_type()
                except Exception as e:
                    raise ModelInvocationError(f"Cannot instantiate {self.name}: {e}") from e
            methods[method] = getattr(instance, method)
        return BoundModel(self, methods.get(PREDICT_METHOD), methods.get(RANKED_METHOD))


class BoundModel:
    """Callable view of an entry symbol after its weights are bound.

    Every call converts model exceptions into :class:`ModelInvocationError`,
    which the dispatcher treats as "try the next candidate".
    """

    def __init__(self, symbol: EntrySymbol, predict_fn: Optional[Callable], ranked_fn: Optional[Callable]):
        self.symbol = symbol
        self._predict = predict_fn
        self._ranked = ranked_fn

    def predict(self, record: Any, horizon: Optional[int] = None) -> Any:
        if self._predict is None:
            raise ModelInvocationError(f"{self.symbol.name} has no {PREDICT_METHOD}()")
        try:
            if self.symbol.accepts_horizon:
                return self._predict(record, horizon)
            return self._predict(record)
        except Exception as e:
            raise ModelInvocationError(f"{self.symbol.name}.{PREDICT_METHOD}() failed: {e}") from e

    def ranked_labels(self, record: Any) -> List[Tuple[Any, float]]:
        """Label/score pairs sorted by descending score."""
        if self._ranked is None:
            raise ModelInvocationError(f"{self.symbol.name} has no {RANKED_METHOD}()")
        try:
            raw = self._ranked(record)
            pairs = normalize_ranked(raw)
        except ModelInvocationError:
            raise
        except Exception as e:
            raise ModelInvocationError(f"{self.symbol.name}.{RANKED_METHOD}() failed: {e}") from e
        return sorted(pairs, key=lambda pair: pair[1], reverse=True)


def normalize_ranked(raw: Any) -> List[Tuple[Any, float]]:
    """Accept a mapping, ``(label, score)`` pairs or objects with ``Label``/``Score``."""
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return [(label, float(score)) for label, score in raw.items()]
    pairs = []
    for item in raw:
        if isinstance(item, (tuple, list)) and len(item) == 2:
            pairs.append((item[0], float(item[1])))
        elif hasattr(item, "Label") and hasattr(item, "Score"):
            pairs.append((item.Label, float(item.Score)))
        else:
            raise ModelInvocationError(f"Unrecognized ranked label entry: {item!r}")
    return pairs


def read_output_field(output: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an output record, a mapping, or return ``default``."""
    if isinstance(output, Mapping):
        return output.get(name, default)
    return getattr(output, name, default)


def field_kind(annotation: Any) -> str:
    """Map a type annotation to a coercion kind; unknown types coerce as text."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return field_kind(args[0])
        return "str"
    if not isinstance(annotation, type):
        return "str"
    if issubclass(annotation, (bool, np.bool_)):
        return "bool"
    if issubclass(annotation, (bytes, bytearray)):
        return "bytes"
    if issubclass(annotation, str):
        return "str"
    if issubclass(annotation, (numbers.Integral, np.integer)):
        return "int"
    if issubclass(annotation, (numbers.Real, np.floating)):
        return "float"
    return "str"


def record_fields(record_type: Optional[type]) -> List[Tuple[str, Any]]:
    """Ordered ``(name, annotation)`` pairs of a record class."""
    if record_type is None:
        return []
    try:
        hints = typing.get_type_hints(record_type)
    except Exception:
        hints = dict(getattr(record_type, "__annotations__", {}))
    if dataclasses.is_dataclass(record_type):
        return [(f.name, hints.get(f.name, f.type)) for f in dataclasses.fields(record_type)]
    return [(name, annotation) for name, annotation in hints.items() if not name.startswith("_")]


def _nested(cls: type, name: str) -> Optional[type]:
    value = getattr(cls, name, None)
    return value if inspect.isclass(value) else None


def _accepts_horizon(cls: type) -> bool:
    method = getattr(cls, PREDICT_METHOD, None)
    if method is None:
        return False
    try:
        return HORIZON_PARAMETER in inspect.signature(method).parameters
    except (TypeError, ValueError):
        return False


def classify(cls: type, input_fields: Sequence[FieldSpec], output_fields: Sequence[str]) -> FrozenSet[Capability]:
    """Derive the capability set of a class from its methods and records."""
    capabilities = set()
    has_predict = callable(getattr(cls, PREDICT_METHOD, None))
    if callable(getattr(cls, RANKED_METHOD, None)):
        capabilities.add(Capability.RANKED_LABELS)
    if has_predict:
        has_bounds = (
            any(f.endswith(LOWER_BOUND_SUFFIX) for f in output_fields)
            and any(f.endswith(UPPER_BOUND_SUFFIX) for f in output_fields)
        )
        if _accepts_horizon(cls) or has_bounds:
            capabilities.add(Capability.VECTOR_WITH_BOUNDS)
        if BOUNDING_BOXES_FIELD in output_fields:
            capabilities.add(Capability.DETECTION)
        if any(f.kind == "bytes" for f in input_fields):
            capabilities.add(Capability.IMAGE_LABEL)
        if not capabilities & {Capability.VECTOR_WITH_BOUNDS, Capability.DETECTION, Capability.IMAGE_LABEL}:
            capabilities.add(Capability.SCALAR)
    return frozenset(capabilities)


class CapabilityIntrospector:
    """Introspect candidates, caching per (unit, candidate name)."""

    def __init__(self):
        self._cache: Dict[Tuple[str, str], EntrySymbol] = {}
        self._lock = threading.Lock()

    def introspect(self, unit: CompiledUnit, name: str) -> EntrySymbol:
        """Describe candidate ``name`` of ``unit``.

        Raises:
            EntrySymbolNotFoundError: No type of that name exists in the unit.
            IntrospectionError: The type exposes no prediction capability.
        """
        key = (unit.module_name, name)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        descriptor = unit.get_type(name)
        if descriptor is None:
            raise EntrySymbolNotFoundError(f"No type named '{name}' in {Path(unit.filename).name}")
        cls = descriptor.obj

        input_type = _nested(cls, INPUT_TYPE_NAME)
        output_type = _nested(cls, OUTPUT_TYPE_NAME)
        input_fields = tuple(FieldSpec(n, field_kind(a)) for n, a in record_fields(input_type))
        output_fields = tuple(n for n, _ in record_fields(output_type))
        capabilities = classify(cls, input_fields, output_fields)
        if not capabilities:
            raise IntrospectionError(
                f"'{name}' exposes neither {PREDICT_METHOD}() nor {RANKED_METHOD}()"
            )

        symbol = EntrySymbol(
            name=name,
            model_type=cls,
            input_type=input_type,
            input_fields=input_fields,
            output_type=output_type,
            output_fields=output_fields,
            capabilities=capabilities,
            accepts_horizon=_accepts_horizon(cls),
        )
        logger.debug(
            f"Introspected {name}: inputs={[f'{f.name}:{f.kind}' for f in input_fields]}, "
            f"capabilities={sorted(c.value for c in capabilities)}"
        )
        with self._lock:
            self._cache.setdefault(key, symbol)
            return self._cache[key]
