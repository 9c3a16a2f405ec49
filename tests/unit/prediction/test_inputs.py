"""Tests for input readers."""

import pytest

from mlpredict.errors import InputDataError
from mlpredict.prediction.inputs import (
    delimiter_for,
    discover_images,
    load_image,
    read_json_document,
    read_lines,
)


class TestDelimiterFor:
    def test_extensions(self):
        assert delimiter_for("a.csv") == ","
        assert delimiter_for("a.TSV") == "\t"
        assert delimiter_for("a.txt") is None


class TestReadLines:
    def test_bom_stripped(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_bytes(b"\xef\xbb\xbfAge,Income\n1,2\n")

        assert read_lines(path) == ["Age,Income", "1,2"]

    def test_missing(self, tmp_path):
        with pytest.raises(InputDataError, match="not found"):
            read_lines(tmp_path / "missing.csv")


class TestReadJsonDocument:
    def test_object(self, tmp_path):
        path = tmp_path / "in.json"
        path.write_text('{"horizon": 7}')

        assert read_json_document(path) == {"horizon": 7}

    @pytest.mark.parametrize("text", ["[1, 2]", "{not json"])
    def test_rejected(self, tmp_path, text):
        path = tmp_path / "in.json"
        path.write_text(text)

        with pytest.raises(InputDataError):
            read_json_document(path)


class TestImages:
    """Tests for image discovery and loading."""

    def test_directory_recursive_sorted(self, tmp_path, write_png):
        write_png(tmp_path / "b.png")
        write_png(tmp_path / "sub" / "a.png")
        (tmp_path / "notes.txt").write_text("x")

        images = discover_images(tmp_path)

        assert [p.name for p in images] == ["b.png", "a.png"]

    def test_single_file(self, tmp_path, write_png):
        path = write_png(tmp_path / "one.png")

        assert discover_images(path) == [path]

    def test_unsupported_file(self, tmp_path):
        path = tmp_path / "doc.pdf"
        path.write_bytes(b"%PDF")

        with pytest.raises(InputDataError, match="Unsupported"):
            discover_images(path)

    def test_empty_directory(self, tmp_path):
        with pytest.raises(InputDataError, match="No image files"):
            discover_images(tmp_path)

    def test_load_valid(self, tmp_path, write_png):
        path = write_png(tmp_path / "ok.png", b"cat")

        assert load_image(path).endswith(b"cat")

    def test_load_rejects_bad_content(self, tmp_path):
        empty = tmp_path / "empty.png"
        empty.write_bytes(b"")
        fake = tmp_path / "fake.jpg"
        fake.write_bytes(b"plain text")

        assert load_image(empty) is None
        assert load_image(fake) is None
