"""
End-to-end prediction tests.

Each test writes an artifact bundle and an input, runs ``predict`` and checks
the CSV written next to the input.
"""

import io
import json
import re
import threading

import pytest

from mlpredict import predict
from mlpredict.api import run_prediction
from mlpredict.core.logging import configure_logging
from mlpredict.errors import PredictionDispatchError

pytestmark = pytest.mark.integration


class TestTabularScenarios:
    """Tabular inputs through the public API."""

    def test_regression(self, runtime, regression_bundle, tmp_path):
        data = tmp_path / "taxi.csv"
        data.write_text("Age,Income\n34,50000\n")

        output = predict(regression_bundle, data, runtime=runtime)

        assert output == tmp_path / "taxi-predicted.csv"
        assert output.read_text() == "Score\n68.000000\n"

    def test_run_duration_logged(self, runtime, regression_bundle, tmp_path):
        stream = io.StringIO()
        configure_logging(verbose=1, stream=stream, use_colors=False)
        data = tmp_path / "taxi.csv"
        data.write_text("Age,Income\n34,50000\n")

        predict(regression_bundle, data, runtime=runtime)

        assert re.search(r"saved to .*taxi-predicted\.csv in \d+\.\ds", stream.getvalue())

    def test_recommendation_uses_score_layout(self, runtime, make_bundle, descriptors, tmp_path):
        directory = make_bundle(
            "Ratings", descriptors["regression"], "Recommendation",
            weights={"intercept": 0.0, "age": 1.0, "income": 0.0},
            descriptor_name="TaxiFare",
        )
        data = tmp_path / "pairs.tsv"
        data.write_text("age\tincome\n3\t0\n")

        output = predict(directory, data, runtime=runtime)

        assert output.read_text() == "Score\n3.000000\n"

    def test_classification_to_output_file(self, runtime, classification_bundle, tmp_path):
        data = tmp_path / "reviews.csv"
        data.write_text("Text\nreally positive\n")

        output = predict(classification_bundle, data, output_path=tmp_path / "out" / "labels.csv", runtime=runtime)

        assert output.read_text() == "PredictedLabel,Score\npositive,0.900000\n"

    def test_forecasting(self, runtime, forecast_bundle, tmp_path):
        data = tmp_path / "sales.json"
        data.write_text(json.dumps({"horizon": 7, "input": {"Sales": 100}}))

        output = predict(forecast_bundle, data, runtime=runtime)

        lines = output.read_text().splitlines()
        assert lines[0] == "PredictedValue,LowerBound,UpperBound"
        assert len(lines) == 8
        assert lines[-1] == "106.000000,104.500000,107.500000"


class TestImageScenarios:
    def test_image_classification_directory(self, runtime, image_bundle, tmp_path, write_png):
        images = tmp_path / "pets"
        write_png(images / "a.png", b"dog")
        (images / "b.png").write_bytes(b"")

        output = predict(image_bundle, images, output_path=tmp_path / "results", runtime=runtime)

        assert output == tmp_path / "results" / "pets-predicted.csv"
        assert output.read_text() == "ImagePath,PredictedLabel,Score\na.png,dog,0.800000\n"

    def test_image_directory_default_output_beside_directory(self, runtime, image_bundle, tmp_path, write_png):
        """Test that predictions for an image directory land next to it, not inside it."""
        images = tmp_path / "data" / "pets"
        write_png(images / "a.png", b"dog")

        output = predict(image_bundle, images, runtime=runtime)

        assert output == tmp_path / "data" / "pets-predicted.csv"
        assert list(images.iterdir()) == [images / "a.png"]

    def test_object_detection(self, runtime, detection_bundle, tmp_path, write_png):
        image = write_png(tmp_path / "helmet.png", b"helmet")

        output = predict(detection_bundle, image, runtime=runtime)

        header, row = output.read_text().splitlines()
        assert header == "ImagePath,PredictedLabels,BoundingBoxes,Scores"
        assert row.startswith("helmet.png,helmet;head,10.000000;20.000000")


class TestRuntimeSharing:
    """Repeated and concurrent calls against one runtime."""

    def test_concurrent_predictions_compile_once(self, runtime, regression_bundle, tmp_path):
        inputs = []
        for i in range(8):
            path = tmp_path / f"batch{i}.csv"
            path.write_text(f"Age,Income\n{i},0\n")
            inputs.append(path)
        errors = []

        def work(path):
            try:
                predict(regression_bundle, path, runtime=runtime)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=work, args=(p,)) for p in inputs]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert runtime.cache.builds == 1
        assert (tmp_path / "batch5-predicted.csv").read_text() == "Score\n3.500000\n"

    def test_run_prediction_does_not_write(self, runtime, regression_bundle, tmp_path):
        data = tmp_path / "taxi.csv"
        data.write_text("Age,Income\n2,0\n")

        result = run_prediction(regression_bundle, data, runtime=runtime)

        assert result.table.rows == [["2.000000"]]
        assert not (tmp_path / "taxi-predicted.csv").exists()

    def test_scenario_mismatch_reports_candidates(self, runtime, make_bundle, descriptors, tmp_path):
        """Test that a regression descriptor declared as classification fails cleanly."""
        directory = make_bundle(
            "Mislabeled", descriptors["regression"], "Classification", descriptor_name="TaxiFare",
        )
        data = tmp_path / "in.csv"
        data.write_text("Age,Income\n1,1\n")

        with pytest.raises(PredictionDispatchError, match="TaxiFare"):
            predict(directory, data, runtime=runtime)
