"""
Entry-symbol resolution.

The descriptor usually defines several types: the model class, its nested
``ModelInput``/``ModelOutput`` records and sometimes helpers. Which one is
"the model" is decided by an ordered list of rules, each a pure function of
the unit's type descriptors. Earlier rules are more specific; the final rule
always yields ``"Model"`` so the list is never empty.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from mlpredict.core.logging import get_logger
from mlpredict.runtime.compiler import CompiledUnit, TypeDescriptor

logger = get_logger(__name__)

INPUT_TYPE_NAME = "ModelInput"
OUTPUT_TYPE_NAME = "ModelOutput"
RESERVED_TYPE_NAMES = (INPUT_TYPE_NAME, OUTPUT_TYPE_NAME)
PREDICTION_METHODS = ("predict", "predict_all_labels")
FALLBACK_NAME = "Model"


@dataclass(frozen=True)
class ResolutionHints:
    """What the bundle says about its entry symbol.

    Attributes:
        declared_name: Class name from the manifest or the descriptor file name.
        folder_name: Leaf name of the artifact directory.
    """
    declared_name: Optional[str] = None
    folder_name: Optional[str] = None


Rule = Callable[[Sequence[TypeDescriptor], ResolutionHints], List[str]]


def declared_name_rule(types: Sequence[TypeDescriptor], hints: ResolutionHints) -> List[str]:
    """The declared or inferred class name, if a type of exactly that name exists."""
    if hints.declared_name and any(t.name == hints.declared_name for t in types):
        return [hints.declared_name]
    return []


def folder_name_rule(types: Sequence[TypeDescriptor], hints: ResolutionHints) -> List[str]:
    """Types named after the artifact folder; exact match first, then ignoring case."""
    if not hints.folder_name:
        return []
    exact = [t.name for t in types if t.name == hints.folder_name]
    folded = [
        t.name for t in types
        if t.name != hints.folder_name and t.name.lower() == hints.folder_name.lower()
    ]
    return exact + folded


def prediction_method_rule(types: Sequence[TypeDescriptor], hints: ResolutionHints) -> List[str]:
    """Types exposing ``predict`` or ``predict_all_labels``."""
    return [
        t.name for t in types
        if t.name not in RESERVED_TYPE_NAMES and any(t.has_method(m) for m in PREDICTION_METHODS)
    ]


def exported_type_rule(types: Sequence[TypeDescriptor], hints: ResolutionHints) -> List[str]:
    """Top-level types other than the input/output records."""
    return [t.name for t in types if not t.is_nested and t.name not in RESERVED_TYPE_NAMES]


def fallback_rule(types: Sequence[TypeDescriptor], hints: ResolutionHints) -> List[str]:
    return [FALLBACK_NAME]


DEFAULT_RULES: List[Rule] = [
    declared_name_rule,
    folder_name_rule,
    prediction_method_rule,
    exported_type_rule,
    fallback_rule,
]


class EntrySymbolResolver:
    """Produce the ordered list of entry-symbol candidates for a unit."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def resolve(self, unit: CompiledUnit, hints: Optional[ResolutionHints] = None) -> List[str]:
        """Apply every rule in order and merge their results.

        Args:
            unit: Compiled descriptor.
            hints: Declared name and folder name of the bundle.

        Returns:
            De-duplicated candidate names, most likely first. Never empty.
        """
        hints = hints or ResolutionHints()
        candidates: List[str] = []
        for rule in self.rules:
            for name in rule(unit.types, hints):
                if name not in candidates:
                    candidates.append(name)
        if not candidates:
            candidates.append(FALLBACK_NAME)
        logger.debug(f"Entry-symbol candidates: {candidates}")
        return candidates
