import base64
import io
import logging
from pathlib import PurePath
from typing import Final

import pdfplumber
from PIL import Image

from dmv_assistant.core.errors import ExtractionFailedError, UnsupportedFileTypeError, ValidationError
from dmv_assistant.domain.models import ExtractedContent, ImageContent, TextContent, UploadedFile

logger = logging.getLogger(__name__)

PDF_MIME: Final[str] = "application/pdf"
PNG_MIME: Final[str] = "image/png"
JPEG_MIME: Final[str] = "image/jpeg"

_SUPPORTED_MIMES: Final[dict[str, str]] = {
    PDF_MIME: PDF_MIME,
    "application/x-pdf": PDF_MIME,
    PNG_MIME: PNG_MIME,
    JPEG_MIME: JPEG_MIME,
    "image/jpg": JPEG_MIME,
    "image/pjpeg": JPEG_MIME,
}
_GENERIC_MIMES: Final[frozenset[str]] = frozenset(
    {"application/octet-stream", "binary/octet-stream", "application/binary", "application/unknown"}
)
_EXTENSIONS: Final[dict[str, str]] = {
    ".pdf": PDF_MIME,
    ".png": PNG_MIME,
    ".jpg": JPEG_MIME,
    ".jpeg": JPEG_MIME,
}
_SIGNATURES: Final[tuple[tuple[bytes, str], ...]] = (
    (b"%PDF-", PDF_MIME),
    (b"\x89PNG\r\n\x1a\n", PNG_MIME),
    (b"\xff\xd8\xff", JPEG_MIME),
)


def detect_mime_type(file: UploadedFile) -> str:
    """
    Resolve the effective MIME type of an upload:
    1. a specific declared MIME type wins (and is rejected if unsupported)
    2. otherwise the filename extension
    3. otherwise the leading magic bytes
    """
    declared = (file.content_type or "").split(";", 1)[0].strip().lower()
    if declared and declared not in _GENERIC_MIMES:
        if declared in _SUPPORTED_MIMES:
            return _SUPPORTED_MIMES[declared]
        raise UnsupportedFileTypeError(declared)

    extension = PurePath(file.filename or "").suffix.lower()
    if extension:
        if extension in _EXTENSIONS:
            return _EXTENSIONS[extension]
        raise UnsupportedFileTypeError(extension)

    for signature, mime_type in _SIGNATURES:
        if file.data.startswith(signature):
            return mime_type

    raise UnsupportedFileTypeError(declared)


def _pdf_text(data: bytes) -> str:
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.warning("PDF text extraction failed: %s", e)
        raise ExtractionFailedError("The PDF could not be read; it may be corrupt or password protected") from e

    text = "\n\n".join(page.strip() for page in pages if page.strip())
    if not text:
        raise ExtractionFailedError("The PDF has no extractable text (scanned documents are not supported)")
    return text


def _check_image(data: bytes) -> None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Exception as e:
        logger.warning("Image validation failed: %s", e)
        raise ExtractionFailedError("The image could not be read; it may be corrupt") from e


class DocumentExtractor:
    """
    Turns an upload into something the classifier can consume:
    text for PDFs, a base64 payload for PNG/JPEG images.
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        self._max_bytes = max_bytes

    def extract(self, file: UploadedFile) -> ExtractedContent:
        if not file.data:
            raise ValidationError("Uploaded file is empty")
        if self._max_bytes is not None and len(file.data) > self._max_bytes:
            raise ValidationError(f"Uploaded file exceeds the {self._max_bytes} byte limit")

        mime_type = detect_mime_type(file)
        logger.debug("Extracting %r as %s", file.filename, mime_type)

        if mime_type == PDF_MIME:
            return TextContent(value=_pdf_text(file.data))

        _check_image(file.data)
        return ImageContent(value=base64.b64encode(file.data).decode("ascii"), mime_type=mime_type)
