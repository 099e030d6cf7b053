from __future__ import annotations
import io
import logging
from typing import Optional, Union

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .config import LOG_LEVEL, cors_origins
from .errors import DocmarkError, InputValidationError
from .models import (
    DocumentResult,
    ExportRequest,
    ProcessUrlRequest,
    TranslateRequest,
    TranslatedDocumentResult,
    TranslateResponse,
    UploadImageResponse,
)
from .services import storage
from .services.pages import resolve_policy
from .services.processing import (
    InputMode,
    UploadedFile,
    export_document,
    process_document,
    translate_content,
    translate_document,
)
from .services.translate import normalize_language, resolve_provider

logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="docmark", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.exception_handler(DocmarkError)
async def docmark_error_handler(request: Request, exc: DocmarkError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    if file is None:
        return None
    content = await file.read()
    if not content:
        return None
    return UploadedFile(filename=file.filename or "upload", content=content, content_type=file.content_type)


@app.post("/api/process-url", response_model=DocumentResult)
async def process_url(req: ProcessUrlRequest):
    return await process_document(InputMode.URL, req.api_key, url=req.document_url)


@app.post("/api/process-file", response_model=DocumentResult)
async def process_file(api_key: str = Form(""), file: Optional[UploadFile] = File(None)):
    return await process_document(InputMode.FILE, api_key, upload=await _read_upload(file))


@app.post("/api/process-image", response_model=DocumentResult)
async def process_image(
    api_key: str = Form(""),
    image_url: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
):
    """
    OCR an image by URL. When only a file is sent it is uploaded to storage first
    and the resulting public URL is used.
    """
    return await process_document(InputMode.IMAGE, api_key, url=image_url, upload=await _read_upload(file))


@app.post("/api/upload-image", response_model=UploadImageResponse)
async def upload_image(file: Optional[UploadFile] = File(None)):
    upload = await _read_upload(file)
    if upload is None:
        raise InputValidationError("No file provided")
    url = await storage.upload_image(upload.content, upload.content_type)
    return UploadImageResponse(success=True, image_url=url)


@app.post("/api/translate", response_model=Union[TranslateResponse, TranslatedDocumentResult])
async def translate(req: TranslateRequest):
    """
    Translate either a combined markdown blob (pages split on the separator) or a
    whole OCR result. The blob form answers with one string per page.
    """
    if req.document is None and not (req.content and req.content.strip()):
        raise InputValidationError("Content is required")
    if req.document is not None and req.content is not None:
        raise InputValidationError("Send either content or document, not both")
    provider = resolve_provider(req)
    target = normalize_language(req.target_language)
    policy = resolve_policy(req.mismatch_policy)

    if req.document is not None:
        return await translate_document(req.document, provider, target, policy)

    translated_pages = await translate_content(req.content, provider, target, policy)
    return TranslateResponse(translated_pages=translated_pages)


@app.post("/api/export")
async def export(req: ExportRequest):
    filename, payload = export_document(req.document, req.translated)
    return StreamingResponse(
        io.BytesIO(payload),
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.get("/api/health")
async def health_api():
    return {"status": "ok"}


@app.get("/health")
async def health_root():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {"name": "docmark", "backend": "ok", "docs": "/docs", "translate": "/api/translate", "health": "/health"}
