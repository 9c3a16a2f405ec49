"""Image classification and object detection handlers.

Both read a single image file or every supported image under a directory.
Unusable images are logged and skipped; the batch fails only when no image
produced a prediction.
"""

from pathlib import Path
from typing import Any, List, Optional, Tuple

from mlpredict.core.logging import get_logger
from mlpredict.errors import InputDataError, IntrospectionError, ModelInvocationError
from mlpredict.prediction.capabilities import BoundModel, Capability, EntrySymbol, read_output_field
from mlpredict.prediction.formatting import PredictionTable, as_score
from mlpredict.prediction.handlers.base import (
    PredictionContext,
    PredictionRecord,
    PredictionResult,
    ScenarioHandler,
    map_ordered,
    register_handler,
)
from mlpredict.prediction.inputs import discover_images, load_image
from mlpredict.prediction.materializer import build_record, zero_value
from mlpredict.runtime.manifest import IMAGE_CLASSIFICATION, OBJECT_DETECTION

logger = get_logger(__name__)

LABEL_FIELD = "PredictedLabel"
SCORE_FIELD = "Score"
BOXES_FIELD = "PredictedBoundingBoxes"


class ImageHandler(ScenarioHandler):
    """Shared image loading and per-image invocation."""

    def require_image_input(self, symbol: EntrySymbol) -> None:
        if symbol.image_field is None:
            raise IntrospectionError(f"'{symbol.name}' has no bytes input field for image content")

    def image_record(self, symbol: EntrySymbol, content: bytes) -> Any:
        values = {spec.name: zero_value(spec.kind) for spec in symbol.input_fields}
        values[symbol.image_field] = content
        return build_record(symbol.input_type, values)

    def predict_images(self, model: BoundModel, context: PredictionContext, predict_one) -> List[Tuple[Path, Any, Any]]:
        """Run ``predict_one(record)`` over every usable image, preserving order.

        A model failure on one image skips that image. When every image is
        skipped because the model failed, the failure is raised so the
        dispatcher can try the next candidate.
        """
        images = discover_images(context.input_path)
        symbol = model.symbol
        failures: List[ModelInvocationError] = []

        def process(path: Path) -> Optional[Tuple[Path, Any, Any]]:
            content = load_image(path)
            if content is None:
                return None
            record = self.image_record(symbol, content)
            try:
                return path, record, predict_one(record)
            except ModelInvocationError as e:
                logger.warning(f"Skipping {path.name}: {e}")
                failures.append(e)
                return None

        results = [r for r in map_ordered(process, images, context.max_workers) if r is not None]
        if not results:
            if failures:
                raise failures[0]
            raise InputDataError(f"No valid predictions: none of {len(images)} image(s) could be read")
        if len(results) < len(images):
            logger.warning(f"Predicted {len(results)} of {len(images)} image(s)")
        return results


@register_handler
class ImageClassificationHandler(ImageHandler):
    """One label per image.

    Ranked-label models yield ``ImagePath,PredictedLabel,Score`` using the
    top-ranked label; single-label models yield ``ImagePath,PredictedLabel``
    plus ``Score`` when their output declares one.
    """
    scenarios = (IMAGE_CLASSIFICATION,)
    priority = 40

    def check(self, symbol: EntrySymbol) -> None:
        self.require(symbol, Capability.RANKED_LABELS, Capability.IMAGE_LABEL)
        self.require_image_input(symbol)

    def run(self, model: BoundModel, context: PredictionContext) -> PredictionResult:
        symbol = model.symbol
        if symbol.has(Capability.RANKED_LABELS):
            results = self.predict_images(model, context, model.ranked_labels)
            table = PredictionTable(["ImagePath", LABEL_FIELD, SCORE_FIELD])
            for path, _, ranked in results:
                label, score = ranked[0] if ranked else (None, None)
                table.add_row([path.name, label, score])
        else:
            results = self.predict_images(model, context, model.predict)
            with_score = SCORE_FIELD in symbol.output_fields or any(
                read_output_field(output, SCORE_FIELD) is not None for _, _, output in results
            )
            header = ["ImagePath", LABEL_FIELD] + ([SCORE_FIELD] if with_score else [])
            table = PredictionTable(header)
            for path, _, output in results:
                row = [path.name, read_output_field(output, LABEL_FIELD)]
                if with_score:
                    row.append(as_score(read_output_field(output, SCORE_FIELD)))
                table.add_row(row)

        return PredictionResult(
            scenario=context.manifest.scenario,
            symbol=symbol.name,
            records=[PredictionRecord(path, output) for path, _, output in results],
            table=table,
        )


@register_handler
class ObjectDetectionHandler(ImageHandler):
    """Labels, bounding boxes and scores per image, each ``;``-joined."""
    scenarios = (OBJECT_DETECTION,)
    priority = 50

    def check(self, symbol: EntrySymbol) -> None:
        self.require(symbol, Capability.DETECTION)
        self.require_image_input(symbol)

    def run(self, model: BoundModel, context: PredictionContext) -> PredictionResult:
        results = self.predict_images(model, context, model.predict)
        table = PredictionTable(["ImagePath", "PredictedLabels", "BoundingBoxes", "Scores"])
        for path, _, output in results:
            table.add_row([
                path.name,
                _as_list(read_output_field(output, LABEL_FIELD)),
                _as_list(read_output_field(output, BOXES_FIELD)),
                [as_score(s) for s in _as_list(read_output_field(output, SCORE_FIELD))],
            ])
        return PredictionResult(
            scenario=context.manifest.scenario,
            symbol=model.symbol.name,
            records=[PredictionRecord(path, output) for path, _, output in results],
            table=table,
        )


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return [value]
    return value
