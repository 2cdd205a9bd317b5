"""Load image and PDF attachments from disk as base64 payloads."""

import base64
import logging
from pathlib import Path

from roundtable.models import ImageInput, PdfInput

logger = logging.getLogger(__name__)

IMAGE_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

PDF_TYPE = "application/pdf"


def load_attachment(path: Path) -> ImageInput | PdfInput:
    """Read ``path`` and wrap it as an image or PDF attachment.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the suffix is not a supported image or PDF type.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Attachment not found: {path}")

    suffix = path.suffix.lower()
    if suffix != ".pdf" and suffix not in IMAGE_TYPES:
        supported = ", ".join(sorted([*IMAGE_TYPES, ".pdf"]))
        raise ValueError(f"Unsupported attachment type '{suffix}' ({path.name}); expected one of {supported}")

    data = base64.b64encode(path.read_bytes()).decode("ascii")
    logger.debug("Loaded attachment %s (%d base64 chars)", path.name, len(data))
    if suffix == ".pdf":
        return PdfInput(data=data, name=path.name)
    return ImageInput(data=data, mime_type=IMAGE_TYPES[suffix])


def load_attachments(paths: list[Path]) -> tuple[list[ImageInput], list[PdfInput]]:
    """Split loaded attachments into (images, pdfs), preserving order."""
    images: list[ImageInput] = []
    pdfs: list[PdfInput] = []
    for path in paths:
        attachment = load_attachment(path)
        if isinstance(attachment, PdfInput):
            pdfs.append(attachment)
        else:
            images.append(attachment)
    return images, pdfs
