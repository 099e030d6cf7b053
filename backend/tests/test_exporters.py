import base64
import io
import re
import zipfile

import pytest

from conftest import JPEG_BYTES, PNG_BYTES, data_url
from docmark.errors import ArchiveBuildError, InputValidationError
from docmark.models import DocumentResult, ImageRef, PageRecord, TranslatedDocumentResult, TranslatedPage
from docmark.services.pages import PAGE_SEPARATOR
from docmark.services.exporters import (
    MARKDOWN_NAME,
    archive_filename,
    build_archive,
    build_markdown,
    decode_image,
)


def _open(payload: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(payload))


class TestMarkdown:
    def test_headings_in_ascending_index_order(self, sample_document):
        markdown = build_markdown(sample_document.pages)
        headings = re.findall(r"^## Page (\d+)$", markdown, flags=re.MULTILINE)
        assert headings == ["0", "1", "2"]

    def test_pages_joined_with_separator(self):
        pages = [PageRecord(index=1, markdown="B"), PageRecord(index=0, markdown="A")]
        assert build_markdown(pages) == "## Page 0\n\nA\n\n---\n\n## Page 1\n\nB"


class TestArchive:
    def test_contains_markdown_and_every_image(self, sample_document):
        with _open(build_archive(sample_document)) as zf:
            assert sorted(zf.namelist()) == sorted([MARKDOWN_NAME, "img-0.png", "img-1.jpeg"])
            assert zf.read("img-0.png") == PNG_BYTES
            assert zf.read("img-1.jpeg") == JPEG_BYTES
            markdown = zf.read(MARKDOWN_NAME).decode("utf-8")
        assert len(re.findall(r"^## Page \d+$", markdown, flags=re.MULTILINE)) == 3
        assert markdown.startswith("## Page 0\n\n# Title")

    def test_single_page_without_images(self):
        doc = DocumentResult(pages=[PageRecord(index=0, markdown="hello world")])
        with _open(build_archive(doc)) as zf:
            assert zf.namelist() == [MARKDOWN_NAME]
            assert zf.read(MARKDOWN_NAME).decode("utf-8") == "## Page 0\n\nhello world"

    def test_raw_base64_without_prefix(self):
        doc = DocumentResult(
            pages=[PageRecord(index=0, markdown="x", images=[ImageRef(id="a.png", image_base64=base64.b64encode(PNG_BYTES).decode())])]
        )
        with _open(build_archive(doc)) as zf:
            assert zf.read("a.png") == PNG_BYTES

    def test_images_without_payload_are_skipped(self):
        doc = DocumentResult(pages=[PageRecord(index=0, markdown="x", images=[ImageRef(id="a.png")])])
        with _open(build_archive(doc)) as zf:
            assert zf.namelist() == [MARKDOWN_NAME]

    def test_translated_variant_uses_original_images(self, sample_document):
        translated = TranslatedDocumentResult(
            pages=[TranslatedPage(index=i, markdown=f"translated {i}") for i in (2, 0, 1)],
            target_language="ZH",
        )
        with _open(build_archive(sample_document, translated)) as zf:
            markdown = zf.read(MARKDOWN_NAME).decode("utf-8")
            assert zf.read("img-0.png") == PNG_BYTES
            assert "img-1.jpeg" in zf.namelist()
        assert markdown == PAGE_SEPARATOR.join(["## Page 0\n\ntranslated 0", "## Page 1\n\ntranslated 1", "## Page 2\n\ntranslated 2"])
        assert "First page" not in markdown

    @pytest.mark.parametrize("indices", [(7,), (0, 1), (0, 1, 2, 3), (0, 1, 1)])
    def test_translation_of_another_document_rejected(self, sample_document, indices):
        translated = TranslatedDocumentResult(pages=[TranslatedPage(index=i, markdown="unrelated") for i in indices])
        with pytest.raises(InputValidationError, match="do not match"):
            build_archive(sample_document, translated)

    def test_same_id_same_bytes_written_once(self):
        image = ImageRef(id="dup.png", image_base64=data_url(PNG_BYTES))
        doc = DocumentResult(
            pages=[PageRecord(index=0, markdown="a", images=[image]), PageRecord(index=1, markdown="b", images=[image])]
        )
        with _open(build_archive(doc)) as zf:
            assert zf.namelist().count("dup.png") == 1

    def test_colliding_ids_rejected(self):
        doc = DocumentResult(
            pages=[
                PageRecord(index=0, markdown="a", images=[ImageRef(id="img.png", image_base64=data_url(PNG_BYTES))]),
                PageRecord(index=1, markdown="b", images=[ImageRef(id="img.png", image_base64=data_url(JPEG_BYTES))]),
            ]
        )
        with pytest.raises(ArchiveBuildError, match="more than one"):
            build_archive(doc)

    @pytest.mark.parametrize("image_id", ["", "../evil.png", "dir/img.png", "document.md"])
    def test_unsafe_ids_rejected(self, image_id):
        doc = DocumentResult(pages=[PageRecord(index=0, markdown="a", images=[ImageRef(id=image_id, image_base64=data_url(PNG_BYTES))])])
        with pytest.raises(ArchiveBuildError):
            build_archive(doc)

    def test_undecodable_image_fails_whole_export(self):
        doc = DocumentResult(pages=[PageRecord(index=0, markdown="a", images=[ImageRef(id="bad.png", image_base64="data:image/png;base64,abc")])])
        with pytest.raises(ArchiveBuildError, match="bad.png"):
            build_archive(doc)


def test_decode_strips_up_to_first_marker_only():
    payload = base64.b64encode(b"base64,inside").decode()
    image = ImageRef(id="x", image_base64="data:image/png;base64," + payload)
    assert decode_image(image) == b"base64,inside"


def test_archive_filenames():
    assert archive_filename(False) == "ocr-results.zip"
    assert archive_filename(True) == "ocr-results-translated.zip"
