from __future__ import annotations
import logging
from typing import Any, Dict

import httpx
from pydantic import ValidationError

from ..config import HTTP_TIMEOUT, MISTRAL_API_BASE, OCR_MODEL
from ..errors import RemoteCapabilityError
from ..models import DocumentResult

logger = logging.getLogger(__name__)

CAPABILITY = "OCR"
SIGNED_URL_EXPIRY_HOURS = 24


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=MISTRAL_API_BASE, timeout=HTTP_TIMEOUT)


def _headers(api_key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}", "Accept": "application/json"}


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:200]}"
    if isinstance(data, dict):
        detail = data.get("message") or data.get("detail") or data
        return f"HTTP {resp.status_code}: {detail}"
    return f"HTTP {resp.status_code}"


async def _request(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> Any:
    try:
        resp = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.error("OCR request %s %s failed: %s", method, url, exc)
        raise RemoteCapabilityError(CAPABILITY, str(exc) or exc.__class__.__name__) from exc
    if resp.is_error:
        message = _error_message(resp)
        logger.error("OCR request %s %s returned %s", method, url, message)
        raise RemoteCapabilityError(CAPABILITY, message)
    try:
        return resp.json()
    except ValueError as exc:
        raise RemoteCapabilityError(CAPABILITY, "response was not JSON") from exc


def _to_document(data: Any) -> DocumentResult:
    try:
        return DocumentResult.model_validate(data)
    except ValidationError as exc:
        raise RemoteCapabilityError(CAPABILITY, f"unexpected response shape: {exc.error_count()} errors") from exc


async def _run_ocr(api_key: str, document: Dict[str, str], include_images: bool) -> DocumentResult:
    payload = {"model": OCR_MODEL, "document": document, "include_image_base64": include_images}
    async with _http_client() as client:
        data = await _request(client, "POST", "/ocr", json=payload, headers=_headers(api_key))
    result = _to_document(data)
    logger.info("OCR (%s) returned %d pages", document["type"], len(result.pages))
    return result


async def process_document_url(api_key: str, document_url: str, include_images: bool = False) -> DocumentResult:
    return await _run_ocr(api_key, {"type": "document_url", "document_url": document_url}, include_images)


async def process_image_url(api_key: str, image_url: str, include_images: bool = True) -> DocumentResult:
    return await _run_ocr(api_key, {"type": "image_url", "image_url": image_url}, include_images)


async def process_file(api_key: str, filename: str, content: bytes, include_images: bool = True) -> DocumentResult:
    """
    Upload the file with purpose "ocr", resolve a signed URL for it, then OCR that URL.
    Nothing is written to local disk.
    """
    async with _http_client() as client:
        uploaded = await _request(
            client,
            "POST",
            "/files",
            data={"purpose": "ocr"},
            files={"file": (filename, content)},
            headers=_headers(api_key),
        )
        file_id = uploaded.get("id") if isinstance(uploaded, dict) else None
        if not file_id:
            raise RemoteCapabilityError(CAPABILITY, "file upload returned no id")
        signed = await _request(
            client,
            "GET",
            f"/files/{file_id}/url",
            params={"expiry": SIGNED_URL_EXPIRY_HOURS},
            headers=_headers(api_key),
        )
    signed_url = signed.get("url") if isinstance(signed, dict) else None
    if not signed_url:
        raise RemoteCapabilityError(CAPABILITY, "no signed URL returned for uploaded file")
    logger.info("Uploaded %s (%d bytes) for OCR as %s", filename, len(content), file_id)
    return await process_document_url(api_key, signed_url, include_images=include_images)
