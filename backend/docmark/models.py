from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ImageRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    top_left_x: int = 0
    top_left_y: int = 0
    bottom_right_x: int = 0
    bottom_right_y: int = 0
    # May carry a "data:image/...;base64," prefix. None when OCR did not return payloads.
    image_base64: Optional[str] = None


class PageRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int
    markdown: str = ""
    images: List[ImageRef] = Field(default_factory=list)


class DocumentResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pages: List[PageRecord] = Field(default_factory=list)

    def sorted_pages(self) -> List[PageRecord]:
        return sorted(self.pages, key=lambda p: p.index)


class TranslatedPage(BaseModel):
    index: int
    markdown: str


class TranslatedDocumentResult(BaseModel):
    """Translated markdown per page. Images stay on the source DocumentResult."""

    pages: List[TranslatedPage] = Field(default_factory=list)
    target_language: Optional[str] = None
    engine: Optional[str] = None

    def sorted_pages(self) -> List[TranslatedPage]:
        return sorted(self.pages, key=lambda p: p.index)


class ProcessUrlRequest(BaseModel):
    api_key: str = ""
    document_url: str = ""


class TranslateRequest(BaseModel):
    engine: Literal["openai", "deeplx", "google"] = "openai"
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: Optional[str] = None
    deeplx_api_key: Optional[str] = None
    target_language: str = "ZH"
    # Exactly one of these: a combined blob split on the page separator, or a document
    content: Optional[str] = None
    document: Optional[DocumentResult] = None
    mismatch_policy: Optional[Literal["placeholder", "fail"]] = None


class TranslateResponse(BaseModel):
    translated_pages: List[str]


class UploadImageResponse(BaseModel):
    success: bool = True
    image_url: str


class ExportRequest(BaseModel):
    document: DocumentResult
    translated: Optional[TranslatedDocumentResult] = None
