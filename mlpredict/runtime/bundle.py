"""
Artifact bundle discovery.

An artifact bundle is a directory produced by training. It must contain
exactly one file of each required kind and may contain a build-dependency
manifest:

    <ModelName>/
        model.mlmodel                 # weights blob
        <ModelName>.consumption.py    # descriptor source
        <ModelName>.mlconfig          # JSON manifest
        requirements.txt              # optional
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from mlpredict.core.logging import get_logger
from mlpredict.errors import AmbiguousArtifactError, ArtifactNotFoundError

logger = get_logger(__name__)

WEIGHTS_PATTERN = "*.mlmodel"
DESCRIPTOR_SUFFIX = ".consumption.py"
DESCRIPTOR_PATTERN = f"*{DESCRIPTOR_SUFFIX}"
MANIFEST_PATTERN = "*.mlconfig"
DEPENDENCY_MANIFEST_NAME = "requirements.txt"

# kind -> glob, in the order they are reported when missing
REQUIRED_KINDS: Dict[str, str] = {
    "weights blob": WEIGHTS_PATTERN,
    "descriptor source": DESCRIPTOR_PATTERN,
    "manifest": MANIFEST_PATTERN,
}


@dataclass(frozen=True)
class ArtifactBundle:
    """Immutable view of an artifact directory.

    Attributes:
        directory: Canonical absolute path of the artifact directory.
        weights_path: The weights blob.
        descriptor_path: The descriptor source file.
        manifest_path: The JSON manifest file.
        requirements_path: The build-dependency manifest, if present.
    """
    directory: Path
    weights_path: Path
    descriptor_path: Path
    manifest_path: Path
    requirements_path: Optional[Path] = None

    @property
    def name(self) -> str:
        """Leaf folder name of the artifact directory."""
        return self.directory.name

    @property
    def descriptor_stem(self) -> str:
        """Descriptor file name without the ``.consumption.py`` suffix."""
        name = self.descriptor_path.name
        return name[: -len(DESCRIPTOR_SUFFIX)] if name.endswith(DESCRIPTOR_SUFFIX) else self.descriptor_path.stem

    def read_descriptor(self) -> str:
        return self.descriptor_path.read_text(encoding="utf-8-sig")

    @classmethod
    def discover(cls, directory: Union[str, Path]) -> "ArtifactBundle":
        """Locate the bundle files inside ``directory``.

        Args:
            directory: Artifact directory.

        Returns:
            ArtifactBundle with canonical paths.

        Raises:
            ArtifactNotFoundError: If the directory does not exist or a required
                file kind is missing. The error names the missing kind.
            AmbiguousArtifactError: If more than one file of a kind exists.
        """
        root = Path(directory).expanduser().resolve()
        if not root.is_dir():
            raise ArtifactNotFoundError("artifact directory", str(root))

        found: Dict[str, Path] = {}
        for kind, pattern in REQUIRED_KINDS.items():
            matches = _match(root, pattern)
            if not matches:
                raise ArtifactNotFoundError(kind, str(root), pattern)
            if len(matches) > 1:
                raise AmbiguousArtifactError(kind, str(root), [m.name for m in matches])
            found[kind] = matches[0]

        requirements = root / DEPENDENCY_MANIFEST_NAME
        bundle = cls(
            directory=root,
            weights_path=found["weights blob"],
            descriptor_path=found["descriptor source"],
            manifest_path=found["manifest"],
            requirements_path=requirements if requirements.is_file() else None,
        )
        logger.debug(
            f"Discovered bundle '{bundle.name}': weights={bundle.weights_path.name}, "
            f"descriptor={bundle.descriptor_path.name}, manifest={bundle.manifest_path.name}, "
            f"requirements={'yes' if bundle.requirements_path else 'no'}"
        )
        return bundle


def _match(root: Path, pattern: str) -> List[Path]:
    return sorted(p for p in root.glob(pattern) if p.is_file())
