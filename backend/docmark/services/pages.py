from __future__ import annotations
import logging
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from ..config import mismatch_policy_name
from ..errors import ConfigurationError, InputValidationError, PartialContentError
from ..models import DocumentResult, TranslatedDocumentResult, TranslatedPage

logger = logging.getLogger(__name__)

# Sentinel line between pages, shared by the translation request builder and document.md
PAGE_SEPARATOR = "\n\n---\n\n"
TRANSLATION_FAILED = "Translation failed for this page"


class MismatchPolicy(str, Enum):
    PLACEHOLDER = "placeholder"
    FAIL = "fail"


def resolve_policy(name: Optional[str] = None) -> MismatchPolicy:
    """Policy named by the request, else the server default from TRANSLATION_MISMATCH_POLICY."""
    if name:
        try:
            return MismatchPolicy(name.lower())
        except ValueError:
            raise InputValidationError(f"Unknown translation mismatch policy: {name}")
    configured = mismatch_policy_name()
    try:
        return MismatchPolicy(configured)
    except ValueError:
        raise ConfigurationError(f"TRANSLATION_MISMATCH_POLICY is set to an unknown policy: {configured}")


def join_pages(markdowns: Iterable[str]) -> str:
    return PAGE_SEPARATOR.join(markdowns)


def split_pages(content: str) -> List[str]:
    return content.split(PAGE_SEPARATOR)


def _fragment_or_placeholder(fragment: Optional[str]) -> str:
    if fragment is None or not fragment.strip():
        return TRANSLATION_FAILED
    return fragment


def align_fragments(
    expected: int,
    fragments: Sequence[Optional[str]],
    policy: MismatchPolicy = MismatchPolicy.PLACEHOLDER,
) -> List[str]:
    """
    Return exactly `expected` fragments, position i matching input page i.
    Missing or blank fragments become TRANSLATION_FAILED; surplus ones are dropped.
    Under MismatchPolicy.FAIL a count mismatch raises PartialContentError instead.
    """
    received = len(fragments)
    if received != expected:
        if policy is MismatchPolicy.FAIL:
            raise PartialContentError(expected, received)
        logger.warning("Translation returned %d fragments for %d pages; aligning with placeholders", received, expected)

    aligned = [_fragment_or_placeholder(f) for f in list(fragments)[:expected]]
    aligned.extend([TRANSLATION_FAILED] * (expected - len(aligned)))
    failed = sum(1 for f in aligned if f == TRANSLATION_FAILED)
    if failed:
        logger.warning("%d of %d pages have no translation", failed, expected)
    return aligned


def pair_translations(
    document: DocumentResult,
    fragments: Sequence[Optional[str]],
    policy: MismatchPolicy = MismatchPolicy.PLACEHOLDER,
    target_language: Optional[str] = None,
    engine: Optional[str] = None,
) -> TranslatedDocumentResult:
    """Re-pair translated fragments with the source pages by position in index order."""
    pages = document.sorted_pages()
    aligned = align_fragments(len(pages), fragments, policy)
    return TranslatedDocumentResult(
        pages=[TranslatedPage(index=page.index, markdown=text) for page, text in zip(pages, aligned)],
        target_language=target_language,
        engine=engine,
    )
