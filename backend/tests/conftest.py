import base64
from typing import Callable, List

import httpx
import pytest

from docmark.config import StorageConfig
from docmark.models import DocumentResult, ImageRef, PageRecord

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR fake png body"
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF fake jpeg body"


def data_url(payload: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(payload).decode("ascii")


class FakeS3:
    """Stands in for a boto3 S3 client; records put_object calls."""

    def __init__(self, error: Exception = None):
        self.calls: List[dict] = []
        self.error = error

    def put_object(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.calls.append(kwargs)
        return {"ETag": '"fake"'}


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig(
        bucket="bucket",
        access_key_id="AKIA",
        secret_access_key="secret",
        region="us-east-1",
    )


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3()


@pytest.fixture
def sample_document() -> DocumentResult:
    """Three pages given out of order, two carrying images."""
    return DocumentResult(
        pages=[
            PageRecord(
                index=2,
                markdown="Third page ![img-1.jpeg](img-1.jpeg)",
                images=[ImageRef(id="img-1.jpeg", top_left_x=1, top_left_y=2, bottom_right_x=3, bottom_right_y=4, image_base64=data_url(JPEG_BYTES, "image/jpeg"))],
            ),
            PageRecord(
                index=0,
                markdown="# Title\n\nFirst page ![img-0.png](img-0.png)",
                images=[ImageRef(id="img-0.png", image_base64=data_url(PNG_BYTES))],
            ),
            PageRecord(index=1, markdown="Second page"),
        ]
    )


@pytest.fixture
def mock_client_factory(monkeypatch) -> Callable:
    """
    Replace a module's `_http_client` factory with one backed by httpx.MockTransport.
    Returns the list of requests seen by the handler.
    """

    def install(module, handler, base_url: str = ""):
        seen: List[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def factory() -> httpx.AsyncClient:
            return httpx.AsyncClient(base_url=base_url, transport=httpx.MockTransport(recording_handler))

        monkeypatch.setattr(module, "_http_client", factory)
        return seen

    return install
