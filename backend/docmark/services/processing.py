from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ..config import MAX_UPLOAD_MB
from ..errors import InputValidationError
from ..models import DocumentResult, TranslatedDocumentResult
from . import ocr, storage
from .exporters import archive_filename, build_archive
from .pages import MismatchPolicy, align_fragments, pair_translations, resolve_policy, split_pages
from .translate import DEFAULT_TARGET, Provider, TargetLanguage, translate_pages

logger = logging.getLogger(__name__)


class InputMode(str, Enum):
    URL = "url"
    FILE = "file"
    IMAGE = "image"


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes
    content_type: Optional[str] = None


def _require_pdf(upload: Optional[UploadedFile]) -> UploadedFile:
    if upload is None or not upload.content:
        raise InputValidationError("File is required")
    is_pdf = "pdf" in (upload.content_type or "") or upload.filename.lower().endswith(".pdf")
    if not is_pdf:
        raise InputValidationError("Invalid file type. Please upload a PDF file.")
    if len(upload.content) > MAX_UPLOAD_MB * 1024 * 1024:
        raise InputValidationError(f"File exceeds the {MAX_UPLOAD_MB} MB limit")
    return upload


async def process_document(
    mode: InputMode,
    api_key: str,
    url: Optional[str] = None,
    upload: Optional[UploadedFile] = None,
) -> DocumentResult:
    """
    Run OCR for exactly one input mode.
    Image mode without a URL uploads the binary first; a failed upload stops before OCR.
    """
    if not api_key:
        raise InputValidationError("Mistral API key is required")
    url = (url or "").strip() or None

    if mode is InputMode.URL:
        if not url:
            raise InputValidationError("PDF URL is required")
        return await ocr.process_document_url(api_key, url)

    if mode is InputMode.FILE:
        upload = _require_pdf(upload)
        return await ocr.process_file(api_key, upload.filename, upload.content)

    if mode is InputMode.IMAGE:
        if not url:
            if upload is None or not upload.content:
                raise InputValidationError("Image URL is required")
            url = await storage.upload_image(upload.content, upload.content_type)
            logger.info("Image %s uploaded to %s", upload.filename, url)
        return await ocr.process_image_url(api_key, url)

    raise InputValidationError(f"Unknown input mode: {mode}")


async def translate_document(
    document: DocumentResult,
    provider: Provider,
    target: TargetLanguage = DEFAULT_TARGET,
    policy: Optional[MismatchPolicy] = None,
) -> TranslatedDocumentResult:
    """Translate each page of an OCR result. Every call produces a new, independent result."""
    policy = policy or resolve_policy()
    markdowns = [page.markdown for page in document.sorted_pages()]
    fragments = await translate_pages(markdowns, provider, target)
    return pair_translations(document, fragments, policy, target_language=target.value, engine=provider.kind)


async def translate_content(
    content: str,
    provider: Provider,
    target: TargetLanguage = DEFAULT_TARGET,
    policy: Optional[MismatchPolicy] = None,
) -> List[str]:
    """Translate a separator-joined blob, returning one string per source page."""
    policy = policy or resolve_policy()
    pages = split_pages(content)
    fragments = await translate_pages(pages, provider, target)
    return align_fragments(len(pages), fragments, policy)


def export_document(document: DocumentResult, translated: Optional[TranslatedDocumentResult] = None) -> Tuple[str, bytes]:
    return archive_filename(translated is not None), build_archive(document, translated)
