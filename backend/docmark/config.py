from __future__ import annotations
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

# Load .env before any service module reads its settings
load_dotenv()

TRUTHY = {"1", "true", "TRUE", "True", "yes"}

MISTRAL_API_BASE = os.getenv("MISTRAL_API_BASE", "https://api.mistral.ai/v1")
OCR_MODEL = os.getenv("OCR_MODEL", "mistral-ocr-latest")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "120"))

MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
MAX_IMAGE_MB = int(os.getenv("MAX_IMAGE_MB", "10"))

DEFAULT_OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
DEFAULT_OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
DEEPLX_BASE_URL = os.getenv("DEEPLX_BASE_URL", "https://api.deeplx.org")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS")
    if not raw:
        return ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173", "http://127.0.0.1:5173"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def mismatch_policy_name() -> str:
    return os.getenv("TRANSLATION_MISMATCH_POLICY", "placeholder").strip().lower()


@dataclass(frozen=True)
class StorageConfig:
    """S3-compatible storage settings, read from the environment at call time."""

    bucket: Optional[str]
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    region: str = "us-east-1"
    endpoint: Optional[str] = None
    force_path_style: bool = False
    public_url: Optional[str] = None
    prefix: Optional[str] = None

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(
            bucket=os.getenv("S3_BUCKET_NAME") or None,
            access_key_id=os.getenv("S3_ACCESS_KEY_ID") or None,
            secret_access_key=os.getenv("S3_SECRET_ACCESS_KEY") or None,
            region=os.getenv("S3_REGION") or "us-east-1",
            endpoint=os.getenv("S3_ENDPOINT") or None,
            force_path_style=os.getenv("S3_FORCE_PATH_STYLE", "false") in TRUTHY,
            public_url=os.getenv("S3_PUBLIC_URL") or None,
            prefix=os.getenv("S3_PREFIX") or None,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.bucket and self.access_key_id and self.secret_access_key)
