"""Tests for artifact bundle discovery."""

import pytest

from mlpredict.errors import AmbiguousArtifactError, ArtifactError, ArtifactNotFoundError
from mlpredict.runtime.bundle import ArtifactBundle, REQUIRED_KINDS


@pytest.fixture
def complete_dir(tmp_path):
    directory = tmp_path / "HousePrice"
    directory.mkdir()
    (directory / "model.mlmodel").write_bytes(b"weights")
    (directory / "HousePrice.consumption.py").write_text("class HousePrice: pass\n")
    (directory / "HousePrice.mlconfig").write_text("{}")
    return directory


class TestArtifactBundleDiscover:
    """Tests for ArtifactBundle.discover."""

    def test_discovers_required_files(self, complete_dir):
        """Test that each required file kind is located."""
        bundle = ArtifactBundle.discover(complete_dir)

        assert bundle.directory == complete_dir.resolve()
        assert bundle.weights_path.name == "model.mlmodel"
        assert bundle.descriptor_path.name == "HousePrice.consumption.py"
        assert bundle.manifest_path.name == "HousePrice.mlconfig"
        assert bundle.requirements_path is None

    def test_optional_requirements(self, complete_dir):
        """Test that requirements.txt is picked up when present."""
        (complete_dir / "requirements.txt").write_text("numpy==1.26.4\n")

        bundle = ArtifactBundle.discover(complete_dir)

        assert bundle.requirements_path == complete_dir.resolve() / "requirements.txt"

    @pytest.mark.parametrize("kind, filename", [
        ("weights blob", "model.mlmodel"),
        ("descriptor source", "HousePrice.consumption.py"),
        ("manifest", "HousePrice.mlconfig"),
    ])
    def test_missing_kind_is_named(self, complete_dir, kind, filename):
        """Test that a missing file kind fails with an error naming that kind."""
        (complete_dir / filename).unlink()
        # unrelated files do not satisfy the contract
        (complete_dir / "notes.txt").write_text("readme")

        with pytest.raises(ArtifactNotFoundError) as exc_info:
            ArtifactBundle.discover(complete_dir)

        assert exc_info.value.kind == kind
        assert kind in str(exc_info.value)

    def test_only_first_missing_kind_reported(self, tmp_path):
        """Test that an empty directory reports the first required kind."""
        empty = tmp_path / "empty"
        empty.mkdir()

        with pytest.raises(ArtifactNotFoundError) as exc_info:
            ArtifactBundle.discover(empty)

        assert exc_info.value.kind == list(REQUIRED_KINDS)[0]

    def test_missing_directory(self, tmp_path):
        """Test that a nonexistent directory is an artifact error."""
        with pytest.raises(ArtifactError):
            ArtifactBundle.discover(tmp_path / "nope")

    def test_ambiguous_kind(self, complete_dir):
        """Test that two manifests are rejected."""
        (complete_dir / "Other.mlconfig").write_text("{}")

        with pytest.raises(AmbiguousArtifactError) as exc_info:
            ArtifactBundle.discover(complete_dir)

        assert exc_info.value.kind == "manifest"
        assert sorted(exc_info.value.candidates) == ["HousePrice.mlconfig", "Other.mlconfig"]


class TestArtifactBundleProperties:
    """Tests for derived bundle properties."""

    def test_name_and_descriptor_stem(self, complete_dir):
        """Test folder name and descriptor stem."""
        bundle = ArtifactBundle.discover(complete_dir)

        assert bundle.name == "HousePrice"
        assert bundle.descriptor_stem == "HousePrice"

    def test_read_descriptor(self, complete_dir):
        """Test reading the descriptor source."""
        bundle = ArtifactBundle.discover(complete_dir)

        assert bundle.read_descriptor() == "class HousePrice: pass\n"
