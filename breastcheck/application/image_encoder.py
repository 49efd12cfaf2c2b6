import base64
import binascii
import logging
import mimetypes
import os
from pathlib import Path
from typing import Optional

from breastcheck.application.errors import ImageProcessingError
from breastcheck.domain.models import MedicalImageRef
from breastcheck.domain.options import ACCEPTED_IMAGE_TYPES, MAX_IMAGE_BYTES


logger = logging.getLogger(__name__)


def strip_data_url_prefix(value: str) -> str:
    """Drop a leading ``data:<mime>;base64,`` header if present."""
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def _read_bytes(source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, os.PathLike)):
        return Path(source).read_bytes()
    if hasattr(source, "getvalue"):
        return source.getvalue()
    if hasattr(source, "read"):
        if hasattr(source, "seek"):
            source.seek(0)
        return source.read()
    raise TypeError(f"Unsupported image source: {type(source).__name__}")


def encode_image(source) -> str:
    """
    Read an image and return its base64 payload.

    Args:
        source: Raw bytes, a filesystem path, or a file-like object

    Returns:
        Base64 string without any data-URL prefix

    Raises:
        ImageProcessingError: If the file cannot be read
    """
    try:
        raw = _read_bytes(source)
    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to read image: %s", e)
        raise ImageProcessingError("Failed to process the selected image. Please choose another file.") from e
    return base64.b64encode(raw).decode("ascii")


def decode_image(payload: str) -> bytes:
    try:
        return base64.b64decode(strip_data_url_prefix(payload), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageProcessingError("Image payload is not valid base64") from e


def describe_image(source, name: Optional[str] = None, mime_type: Optional[str] = None) -> MedicalImageRef:
    """Build the reference recorded when a file is selected; no payload yet."""
    name = name or getattr(source, "name", None)
    if name is None and isinstance(source, (str, os.PathLike)):
        name = Path(source).name
    name = name or "image"

    mime_type = mime_type or getattr(source, "type", None) or mimetypes.guess_type(name)[0] or ""

    size = getattr(source, "size", None)
    if size is None:
        try:
            if isinstance(source, (bytes, bytearray)):
                size = len(source)
            elif isinstance(source, (str, os.PathLike)):
                size = Path(source).stat().st_size
            else:
                size = len(_read_bytes(source))
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to read image: %s", e)
            raise ImageProcessingError("Failed to process the selected image. Please choose another file.") from e

    return MedicalImageRef(name=os.path.basename(str(name)), size=size, mime_type=mime_type)


def check_image(image: MedicalImageRef, max_bytes: int = MAX_IMAGE_BYTES) -> None:
    if image.mime_type.lower() not in ACCEPTED_IMAGE_TYPES:
        raise ImageProcessingError(
            f"Unsupported file type '{image.mime_type or 'unknown'}'. Please upload a JPEG or PNG image."
        )
    if image.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ImageProcessingError(f"Image is larger than the {limit_mb:g}MB limit.")


def attach_inline_data(image: MedicalImageRef, source, max_bytes: int = MAX_IMAGE_BYTES) -> MedicalImageRef:
    """Return a copy of ``image`` carrying the encoded payload, ready to send."""
    check_image(image, max_bytes)
    return MedicalImageRef(
        name=image.name,
        size=image.size,
        mime_type=image.mime_type,
        inline_data=encode_image(source),
    )
