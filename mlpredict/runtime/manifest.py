"""
Scenario manifest parsing.

The manifest is a JSON document written at training time. Only a handful of
keys matter for inference:

    {
        "Scenario": "Classification",
        "DataSource": {
            "HasHeader": true,
            "Delimiter": ",",
            "ColumnProperties": [{"ColumnName": "Age"}, ...]
        },
        "TrainingOption": {"LabelColumn": "Churn"},
        "ClassName": "ChurnModel"          # optional
    }
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema

from mlpredict.core.logging import get_logger
from mlpredict.errors import ManifestError

logger = get_logger(__name__)

CLASSIFICATION = "classification"
REGRESSION = "regression"
FORECASTING = "forecasting"
RECOMMENDATION = "recommendation"
TEXT_CLASSIFICATION = "text-classification"
IMAGE_CLASSIFICATION = "image-classification"
OBJECT_DETECTION = "object-detection"

CANONICAL_SCENARIOS = (
    CLASSIFICATION,
    REGRESSION,
    FORECASTING,
    RECOMMENDATION,
    TEXT_CLASSIFICATION,
    IMAGE_CLASSIFICATION,
    OBJECT_DETECTION,
)
IMAGE_SCENARIOS = (IMAGE_CLASSIFICATION, OBJECT_DETECTION)

UNKNOWN_SCENARIO = "Unknown"

# Variants not reachable by separator normalization alone
SCENARIO_SYNONYMS: Dict[str, str] = {
    "textclassification": TEXT_CLASSIFICATION,
    "imageclassification": IMAGE_CLASSIFICATION,
    "objectdetection": OBJECT_DETECTION,
    "timeseries": FORECASTING,
    "time-series": FORECASTING,
    "time-series-forecasting": FORECASTING,
    "value-prediction": REGRESSION,
}

DEFAULT_HAS_HEADER = False
DEFAULT_DELIMITER = ","
DEFAULT_LABEL_COLUMN = "Label"

MANIFEST_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "Scenario": {"type": "string"},
        "ClassName": {"type": "string"},
        "DataSource": {
            "type": "object",
            "properties": {
                "HasHeader": {"type": "boolean"},
                "Delimiter": {"type": "string"},
                "ColumnProperties": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {"ColumnName": {"type": "string"}},
                    },
                },
            },
        },
        "TrainingOption": {
            "type": "object",
            "properties": {"LabelColumn": {"type": "string"}},
        },
    },
}


def normalize_scenario(tag: Optional[str]) -> str:
    """Map a scenario tag to its canonical name.

    Casing, surrounding whitespace and ``_``/space separators are ignored, so
    ``"Image_Classification"`` and ``"imageclassification"`` both become
    ``"image-classification"``. Unknown tags are returned verbatim (stripped).
    """
    if tag is None:
        return UNKNOWN_SCENARIO
    stripped = tag.strip()
    key = re.sub(r"[\s_]+", "-", stripped.lower())
    if key in CANONICAL_SCENARIOS:
        return key
    if key in SCENARIO_SYNONYMS:
        return SCENARIO_SYNONYMS[key]
    return stripped or UNKNOWN_SCENARIO


def is_known_scenario(tag: str) -> bool:
    return tag in CANONICAL_SCENARIOS


@dataclass
class ScenarioManifest:
    """Parsed manifest.

    Every field is fixed at parse time except ``resolved_entry_symbol``, which
    the dispatcher records after a successful run.

    Attributes:
        scenario: Canonical scenario tag, or the raw tag when unknown.
        raw_scenario: Tag exactly as written in the manifest.
        has_header: Whether tabular input starts with a header row.
        delimiter: Column delimiter for tabular input.
        columns: Declared column names, in order.
        label_column: Name of the label column used during training.
        entry_symbol_hint: Class name suggested by the manifest or descriptor file name.
        resolved_entry_symbol: Class name that actually served predictions.
    """
    scenario: str
    raw_scenario: str = UNKNOWN_SCENARIO
    has_header: bool = DEFAULT_HAS_HEADER
    delimiter: str = DEFAULT_DELIMITER
    columns: List[str] = field(default_factory=list)
    label_column: str = DEFAULT_LABEL_COLUMN
    entry_symbol_hint: Optional[str] = None
    resolved_entry_symbol: Optional[str] = None

    @property
    def is_image_scenario(self) -> bool:
        return self.scenario in IMAGE_SCENARIOS

    @property
    def feature_columns(self) -> List[str]:
        """Declared columns without the label column."""
        return [c for c in self.columns if c != self.label_column]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], entry_symbol_hint: Optional[str] = None) -> "ScenarioManifest":
        """Create a ScenarioManifest from a parsed manifest document.

        Args:
            data: Parsed manifest JSON.
            entry_symbol_hint: Hint derived from the descriptor file name. The
                manifest's ``ClassName`` key takes precedence when present.

        Returns:
            ScenarioManifest instance

        Raises:
            ManifestError: If the document does not match the manifest schema.
        """
        try:
            jsonschema.validate(data, MANIFEST_SCHEMA)
        except jsonschema.ValidationError as e:
            where = "/".join(str(p) for p in e.absolute_path) or "<root>"
            raise ManifestError(f"Invalid manifest at {where}: {e.message}") from e

        raw = data.get("Scenario", UNKNOWN_SCENARIO)
        scenario = normalize_scenario(raw)
        source = data.get("DataSource") or {}
        training = data.get("TrainingOption") or {}

        columns = [
            c["ColumnName"] for c in source.get("ColumnProperties", [])
            if c.get("ColumnName")
        ]
        manifest = cls(
            scenario=scenario,
            raw_scenario=raw,
            columns=columns,
            label_column=training.get("LabelColumn", DEFAULT_LABEL_COLUMN),
            entry_symbol_hint=data.get("ClassName") or entry_symbol_hint,
        )
        # Image scenarios read files, not delimited rows
        if scenario not in IMAGE_SCENARIOS:
            manifest.has_header = source.get("HasHeader", DEFAULT_HAS_HEADER)
            manifest.delimiter = source.get("Delimiter") or DEFAULT_DELIMITER
        return manifest


def read_manifest(path: Union[str, Path], entry_symbol_hint: Optional[str] = None) -> ScenarioManifest:
    """Parse a manifest file.

    Args:
        path: Path to the ``*.mlconfig`` file.
        entry_symbol_hint: Class name inferred from the descriptor file name.

    Returns:
        ScenarioManifest

    Raises:
        ManifestError: If the file is unreadable, not JSON, or malformed.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Manifest {path.name} is not valid JSON: {e}") from e

    manifest = ScenarioManifest.from_dict(data, entry_symbol_hint=entry_symbol_hint)
    if not is_known_scenario(manifest.scenario):
        logger.warning(f"Manifest {path.name} declares unknown scenario '{manifest.raw_scenario}'")
    logger.debug(
        f"Manifest: scenario={manifest.scenario}, has_header={manifest.has_header}, "
        f"delimiter={manifest.delimiter!r}, columns={len(manifest.columns)}, "
        f"hint={manifest.entry_symbol_hint}"
    )
    return manifest
