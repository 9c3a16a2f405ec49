"""
Input readers: delimited text, JSON documents and image files.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from mlpredict.core.logging import get_logger
from mlpredict.errors import InputDataError

logger = get_logger(__name__)

EXTENSION_DELIMITERS = {
    ".csv": ",",
    ".tsv": "\t",
}
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".gif")

# extension -> accepted leading byte signatures
IMAGE_SIGNATURES = {
    ".jpg": (b"\xff\xd8\xff",),
    ".jpeg": (b"\xff\xd8\xff",),
    ".png": (b"\x89PNG\r\n\x1a\n",),
    ".bmp": (b"BM",),
    ".gif": (b"GIF87a", b"GIF89a"),
}


def delimiter_for(path: Union[str, Path]) -> Optional[str]:
    """Delimiter implied by the file extension, or None."""
    return EXTENSION_DELIMITERS.get(Path(path).suffix.lower())


def read_lines(path: Union[str, Path]) -> List[str]:
    """Read a text input file as lines.

    Raises:
        InputDataError: If the file does not exist or cannot be read.
    """
    path = Path(path)
    if not path.is_file():
        raise InputDataError(f"Input file not found: {path}")
    try:
        return path.read_text(encoding="utf-8-sig").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise InputDataError(f"Cannot read input file {path}: {e}") from e


def read_json_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON object from ``path``.

    Raises:
        InputDataError: If the file is missing, not JSON, or not an object.
    """
    text = "\n".join(read_lines(path))
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputDataError(f"Input {Path(path).name} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise InputDataError(f"Input {Path(path).name} must contain a JSON object")
    return document


def is_image_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS


def discover_images(path: Union[str, Path]) -> List[Path]:
    """List image files: the file itself, or every image under a directory.

    Raises:
        InputDataError: If the path is missing, unsupported, or holds no images.
    """
    path = Path(path)
    if path.is_file():
        if not is_image_file(path):
            raise InputDataError(
                f"Unsupported image format '{path.suffix}'. Supported: {', '.join(IMAGE_EXTENSIONS)}"
            )
        return [path]
    if not path.is_dir():
        raise InputDataError(f"Image input not found: {path}")
    images = sorted(p for p in path.rglob("*") if is_image_file(p))
    if not images:
        raise InputDataError(f"No image files found in {path}")
    logger.debug(f"Found {len(images)} image(s) under {path}")
    return images


def load_image(path: Path) -> Optional[bytes]:
    """Read an image, returning None (and logging) when it is unusable."""
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning(f"Skipping unreadable image {path.name}: {e}")
        return None
    if not data:
        logger.warning(f"Skipping empty image {path.name}")
        return None
    signatures = IMAGE_SIGNATURES.get(path.suffix.lower(), ())
    if signatures and not data.startswith(signatures):
        logger.warning(f"Skipping {path.name}: content is not a valid {path.suffix.lower()} image")
        return None
    return data
