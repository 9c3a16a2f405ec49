"""
Pytest configuration for mlpredict tests.

Provides fixtures that write artifact bundles (descriptor source, manifest,
joblib weights blob) into ``tmp_path`` and a ModelRuntime with private
caches, so tests never share state through the process-wide caches.
"""

import json
import sys
import textwrap
import zipfile

import joblib
import pytest

from mlpredict.core.logging import reset_logging
from mlpredict.runtime import KeyedBuildCache, ModelRuntime
from mlpredict.config import RuntimeConfig


REGRESSION_DESCRIPTOR = '''
from dataclasses import dataclass

import joblib


class TaxiFare:
    MODEL_PATH = None
    _weights = None

    @dataclass
    class ModelInput:
        Age: int = 0
        Income: float = 0.0

    @dataclass
    class ModelOutput:
        Score: float = 0.0

    @classmethod
    def predict(cls, record):
        if cls._weights is None:
            cls._weights = joblib.load(cls.MODEL_PATH)
        w = cls._weights
        return cls.ModelOutput(Score=w["intercept"] + w["age"] * record.Age + w["income"] * record.Income)
'''

CLASSIFICATION_DESCRIPTOR = '''
from dataclasses import dataclass

import joblib


class Sentiment:
    MODEL_PATH = None

    @dataclass
    class ModelInput:
        Text: str = ""

    @dataclass
    class ModelOutput:
        PredictedLabel: str = ""
        Score: float = 0.0

    @staticmethod
    def predict_all_labels(record):
        labels = joblib.load(Sentiment.MODEL_PATH)["labels"]
        text = record.Text.lower()
        scores = {label: (0.9 if label in text else 0.1 / len(labels)) for label in labels}
        # alphabetical, not by score
        return sorted(scores.items())
'''

FORECAST_DESCRIPTOR = '''
from dataclasses import dataclass, field
from typing import List

import joblib


class SalesForecast:
    MODEL_PATH = None

    @dataclass
    class ModelInput:
        Sales: float = 0.0

    @dataclass
    class ModelOutput:
        Sales: List[float] = field(default_factory=list)
        Sales_LB: List[float] = field(default_factory=list)
        Sales_UB: List[float] = field(default_factory=list)

    @classmethod
    def predict(cls, record, horizon=None):
        horizon = horizon or joblib.load(cls.MODEL_PATH)["default_horizon"]
        values = [record.Sales + step for step in range(horizon)]
        return cls.ModelOutput(values, [v - 1.5 for v in values], [v + 1.5 for v in values])
'''

IMAGE_DESCRIPTOR = '''
from dataclasses import dataclass

import joblib


class PetClassifier:
    MODEL_PATH = None

    @dataclass
    class ModelInput:
        Label: str = ""
        ImageSource: bytes = b""

    @classmethod
    def predict_all_labels(cls, record):
        classes = joblib.load(cls.MODEL_PATH)["classes"]
        hit = [c for c in classes if c.encode() in record.ImageSource]
        return {c: (0.8 if c in hit else 0.2 / len(classes)) for c in classes}
'''

DETECTION_DESCRIPTOR = '''
from dataclasses import dataclass, field
from typing import List


class HelmetDetection:
    MODEL_PATH = None

    @dataclass
    class ModelInput:
        Image: bytes = b""

    @dataclass
    class ModelOutput:
        PredictedLabel: List[str] = field(default_factory=list)
        PredictedBoundingBoxes: List[float] = field(default_factory=list)
        Score: List[float] = field(default_factory=list)

    def predict(self, record):
        if b"helmet" not in record.Image:
            return self.ModelOutput()
        return self.ModelOutput(["helmet", "head"], [10.0, 20.0, 30.0, 40.0, 5.5, 6.5, 7.5, 8.5], [0.9, 0.45])
'''

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def write_manifest(path, scenario, has_header=True, delimiter=",", columns=(), label="Label", **extra):
    document = {
        "Scenario": scenario,
        "DataSource": {
            "HasHeader": has_header,
            "Delimiter": delimiter,
            "ColumnProperties": [{"ColumnName": c} for c in columns],
        },
        "TrainingOption": {"LabelColumn": label},
    }
    document.update(extra)
    path.write_text(json.dumps(document, indent=2))
    return path


@pytest.fixture
def make_bundle(tmp_path):
    """Factory writing an artifact directory.

    Returns a function ``make(name, descriptor, scenario, weights=None, ...)``
    that returns the bundle directory.
    """
    def make(name, descriptor, scenario, weights=None, descriptor_name=None,
             requirements=None, **manifest_options):
        directory = tmp_path / "models" / name
        directory.mkdir(parents=True)
        joblib.dump(weights or {}, directory / "model.mlmodel")
        stem = descriptor_name or name
        (directory / f"{stem}.consumption.py").write_text(textwrap.dedent(descriptor))
        write_manifest(directory / f"{stem}.mlconfig", scenario, **manifest_options)
        if requirements is not None:
            (directory / "requirements.txt").write_text(requirements)
        return directory
    return make


@pytest.fixture
def runtime(tmp_path):
    """ModelRuntime with private caches and a local (empty) wheelhouse."""
    wheelhouse = tmp_path / "wheelhouse"
    wheelhouse.mkdir()
    config = RuntimeConfig(
        package_cache_dir=str(tmp_path / "packages"),
        wheelhouse=str(wheelhouse),
        max_workers=2,
    )
    return ModelRuntime(
        config=config,
        cache=KeyedBuildCache("test-runtimes"),
        dependency_cache=KeyedBuildCache("test-dependencies"),
    )


@pytest.fixture
def regression_bundle(make_bundle):
    return make_bundle(
        "TaxiFare", REGRESSION_DESCRIPTOR, "Regression",
        weights={"intercept": 1.0, "age": 0.5, "income": 0.001},
        columns=["Age", "Income", "Fare"], label="Fare",
    )


@pytest.fixture
def classification_bundle(make_bundle):
    return make_bundle(
        "Sentiment", CLASSIFICATION_DESCRIPTOR, "Classification",
        weights={"labels": ["negative", "positive"]},
        columns=["Text", "Label"],
    )


@pytest.fixture
def forecast_bundle(make_bundle):
    return make_bundle(
        "SalesForecast", FORECAST_DESCRIPTOR, "Forecasting",
        weights={"default_horizon": 3},
    )


@pytest.fixture
def image_bundle(make_bundle):
    return make_bundle(
        "PetClassifier", IMAGE_DESCRIPTOR, "ImageClassification",
        weights={"classes": ["cat", "dog", "bird"]},
    )


@pytest.fixture
def detection_bundle(make_bundle):
    return make_bundle("HelmetDetection", DETECTION_DESCRIPTOR, "object_detection")


@pytest.fixture
def write_png():
    """Write a file with a PNG signature followed by ``payload``."""
    def write(path, payload=b""):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(PNG_SIGNATURE + payload)
        return path
    return write


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()


@pytest.fixture
def descriptors():
    """Descriptor sources by scenario, for tests that assemble their own bundles."""
    return {
        "regression": REGRESSION_DESCRIPTOR,
        "classification": CLASSIFICATION_DESCRIPTOR,
        "forecasting": FORECAST_DESCRIPTOR,
        "image-classification": IMAGE_DESCRIPTOR,
        "object-detection": DETECTION_DESCRIPTOR,
    }


def _build_wheel(directory, name, version, tag="py3-none-any", requires=(), native=False, body=None):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}-{version}-{tag}.whl"
    dist_info = f"{name}-{version}.dist-info"
    metadata = ["Metadata-Version: 2.1", f"Name: {name}", f"Version: {version}"]
    metadata += [f"Requires-Dist: {r}" for r in requires]
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(f"{name}/__init__.py", body or f"VERSION = {version!r}\nTAG = {tag!r}\n")
        if native:
            zf.writestr(f"{name}/_speedups.so", b"\x7fELF")
        zf.writestr(f"{dist_info}/METADATA", "\n".join(metadata) + "\n")
        zf.writestr(f"{dist_info}/WHEEL", "Wheel-Version: 1.0\n")
    return path


@pytest.fixture
def build_wheel():
    """Factory writing a minimal wheel archive; returns its path."""
    return _build_wheel


@pytest.fixture
def isolated_sys_path(monkeypatch):
    """Restore ``sys.path`` after a test that compiles descriptors with extra roots."""
    monkeypatch.setattr(sys, "path", list(sys.path))
    return sys.path
