from __future__ import annotations
import base64
import binascii
import io
import logging
import zipfile
from typing import Dict, Iterable, Optional, Protocol

from ..errors import ArchiveBuildError, InputValidationError
from ..models import DocumentResult, ImageRef, TranslatedDocumentResult
from .pages import PAGE_SEPARATOR

logger = logging.getLogger(__name__)

MARKDOWN_NAME = "document.md"
ORIGINAL_ARCHIVE_NAME = "ocr-results.zip"
TRANSLATED_ARCHIVE_NAME = "ocr-results-translated.zip"
DATA_URL_MARKER = "base64,"


class _Page(Protocol):
    index: int
    markdown: str


def archive_filename(translated: bool) -> str:
    return TRANSLATED_ARCHIVE_NAME if translated else ORIGINAL_ARCHIVE_NAME


def build_markdown(pages: Iterable[_Page]) -> str:
    """Render pages in ascending index order, each under a "## Page N" heading."""
    ordered = sorted(pages, key=lambda p: p.index)
    return PAGE_SEPARATOR.join(f"## Page {page.index}\n\n{page.markdown}" for page in ordered)


def decode_image(image: ImageRef) -> bytes:
    """
    Decode an image payload, stripping any data URL prefix up to and including
    the first "base64," marker.
    """
    payload = image.image_base64 or ""
    marker = payload.find(DATA_URL_MARKER)
    if marker != -1:
        payload = payload[marker + len(DATA_URL_MARKER):]
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise ArchiveBuildError(f"Image {image.id!r} is not valid base64: {exc}") from exc


def _check_image_id(image_id: str) -> None:
    if not image_id or "/" in image_id or "\\" in image_id or image_id in {".", ".."} or image_id == MARKDOWN_NAME:
        raise ArchiveBuildError(f"Image id {image_id!r} cannot be used as an archive file name")


def collect_images(document: DocumentResult) -> Dict[str, bytes]:
    """
    Decode every image of the document, keyed by id.
    An id seen twice with identical bytes is kept once; differing bytes are a collision.
    """
    images: Dict[str, bytes] = {}
    for page in document.sorted_pages():
        for image in page.images:
            if not image.image_base64:
                continue
            _check_image_id(image.id)
            data = decode_image(image)
            existing = images.get(image.id)
            if existing is not None and existing != data:
                raise ArchiveBuildError(f"Image id {image.id!r} is used by more than one distinct image")
            images[image.id] = data
    return images


def _check_translation_matches(document: DocumentResult, translated: TranslatedDocumentResult) -> None:
    expected = sorted(page.index for page in document.pages)
    received = sorted(page.index for page in translated.pages)
    if expected != received:
        raise InputValidationError(
            f"Translated pages {received} do not match the document's pages {expected}"
        )


def build_archive(document: DocumentResult, translated: Optional[TranslatedDocumentResult] = None) -> bytes:
    """
    Package one markdown file plus the original document's images into a zip.
    When `translated` is given its markdown replaces the original text; images always
    come from `document` since translations never carry their own.
    """
    if translated is not None:
        _check_translation_matches(document, translated)
    markdown = build_markdown(translated.pages if translated is not None else document.pages)
    images = collect_images(document)

    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zipf:
            zipf.writestr(MARKDOWN_NAME, markdown)
            for image_id, data in images.items():
                zipf.writestr(image_id, data)
    except (zipfile.BadZipFile, OSError, ValueError) as exc:
        raise ArchiveBuildError(f"Failed to finalize archive: {exc}") from exc

    logger.info(
        "Built %s archive: %d pages, %d images",
        "translated" if translated is not None else "original",
        len(document.pages),
        len(images),
    )
    return buffer.getvalue()
