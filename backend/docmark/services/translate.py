from __future__ import annotations
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Sequence, Union

import httpx
import openai
from deep_translator import GoogleTranslator

from ..config import DEEPLX_BASE_URL, DEFAULT_OPENAI_BASE_URL, DEFAULT_OPENAI_MODEL, HTTP_TIMEOUT
from ..errors import InputValidationError, RemoteCapabilityError
from ..models import TranslateRequest

logger = logging.getLogger(__name__)

CAPABILITY = "Translation"
GOOGLE_CHUNK_LIMIT = 4500


class TargetLanguage(str, Enum):
    EN = "EN"
    ZH = "ZH"
    JA = "JA"
    KO = "KO"
    FR = "FR"
    DE = "DE"
    ES = "ES"
    RU = "RU"


DEFAULT_TARGET = TargetLanguage.ZH

LANGUAGE_NAMES = {
    TargetLanguage.EN: "English",
    TargetLanguage.ZH: "Chinese (Simplified)",
    TargetLanguage.JA: "Japanese",
    TargetLanguage.KO: "Korean",
    TargetLanguage.FR: "French",
    TargetLanguage.DE: "German",
    TargetLanguage.ES: "Spanish",
    TargetLanguage.RU: "Russian",
}

GOOGLE_CODES = {
    TargetLanguage.EN: "en",
    TargetLanguage.ZH: "zh-CN",
    TargetLanguage.JA: "ja",
    TargetLanguage.KO: "ko",
    TargetLanguage.FR: "fr",
    TargetLanguage.DE: "de",
    TargetLanguage.ES: "es",
    TargetLanguage.RU: "ru",
}

LANG_ALIASES = {
    "english": "EN",
    "eng": "EN",
    "zh-cn": "ZH",
    "zh-hans": "ZH",
    "chinese": "ZH",
    "jp": "JA",
    "japanese": "JA",
    "korean": "KO",
    "french": "FR",
    "german": "DE",
    "spanish": "ES",
    "russian": "RU",
}


def normalize_language(code: Optional[str]) -> TargetLanguage:
    if not code or not code.strip():
        return DEFAULT_TARGET
    raw = code.strip()
    raw = LANG_ALIASES.get(raw.lower(), raw.upper())
    try:
        return TargetLanguage(raw)
    except ValueError:
        raise InputValidationError(f"Unsupported target language: {code}")


@dataclass(frozen=True)
class OpenAIProvider:
    api_key: str
    base_url: str = DEFAULT_OPENAI_BASE_URL
    model: str = DEFAULT_OPENAI_MODEL
    kind = "openai"


@dataclass(frozen=True)
class DeepLXProvider:
    api_key: str
    kind = "deeplx"


@dataclass(frozen=True)
class GoogleProvider:
    """Keyless fallback through deep_translator."""

    kind = "google"


Provider = Union[OpenAIProvider, DeepLXProvider, GoogleProvider]


def resolve_provider(req: TranslateRequest) -> Provider:
    """Build the provider variant for the request, checking the fields that variant requires."""
    if req.engine == "openai":
        if not req.openai_api_key:
            raise InputValidationError("OpenAI API key is required")
        return OpenAIProvider(
            api_key=req.openai_api_key,
            base_url=req.openai_base_url or DEFAULT_OPENAI_BASE_URL,
            model=req.openai_model or DEFAULT_OPENAI_MODEL,
        )
    if req.engine == "deeplx":
        if not req.deeplx_api_key:
            raise InputValidationError("DeepLX API key is required")
        return DeepLXProvider(api_key=req.deeplx_api_key)
    if req.engine == "google":
        return GoogleProvider()
    raise InputValidationError(f"Invalid translation engine: {req.engine}")


def _system_prompt(target: TargetLanguage) -> str:
    name = LANGUAGE_NAMES[target]
    return (
        "You are a translation engine, you can only translate text and cannot interpret it, and do not explain. "
        f"Translate the text to {name}, please do not explain any sentences, just translate or leave them as they are. "
        "Retain all spaces and line breaks in the original text. "
        "Please do not wrap the code in code blocks, I will handle it myself. "
        "If the code has comments, you should translate the comments as well. "
        f"If the original text is already in {name}, please do not skip the translation and directly output the original text. "
        "This is the content you need to translate: "
    )


def _chunk_text(text: str, limit: int = GOOGLE_CHUNK_LIMIT) -> Iterable[str]:
    """
    Yield chunks of text under the provided character limit.
    Keeps paragraph boundaries when possible.
    """
    if len(text) <= limit:
        yield text
        return

    current = []
    total = 0
    for paragraph in text.split("\n"):
        if total and total + len(paragraph) + 1 > limit:
            yield "\n".join(current).strip()
            current = []
            total = 0
        current.append(paragraph)
        total += len(paragraph) + 1

    if current:
        yield "\n".join(current).strip()


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT)


def _openai_client(provider: OpenAIProvider) -> openai.AsyncOpenAI:
    return openai.AsyncOpenAI(api_key=provider.api_key, base_url=provider.base_url)


async def _translate_with_openai(client: openai.AsyncOpenAI, model: str, text: str, target: TargetLanguage) -> Optional[str]:
    try:
        completion = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": _system_prompt(target)},
                {"role": "user", "content": text},
            ],
            temperature=0.6,
        )
    except openai.OpenAIError as exc:
        logger.error("OpenAI translation failed: %s", exc)
        raise RemoteCapabilityError(CAPABILITY, str(exc)) from exc
    if not completion.choices:
        return None
    return completion.choices[0].message.content


async def _translate_with_deeplx(client: httpx.AsyncClient, api_key: str, text: str, target: TargetLanguage) -> Optional[str]:
    url = f"{DEEPLX_BASE_URL.rstrip('/')}/{api_key}/translate"
    payload = {"text": text, "source_lang": "auto", "target_lang": target.value}
    try:
        resp = await client.post(url, json=payload)
    except httpx.HTTPError as exc:
        logger.error("DeepLX request failed: %s", exc)
        raise RemoteCapabilityError(CAPABILITY, str(exc) or exc.__class__.__name__) from exc
    if resp.is_error:
        logger.error("DeepLX translation error %s: %s", resp.status_code, resp.text[:200])
        raise RemoteCapabilityError(CAPABILITY, f"DeepLX returned HTTP {resp.status_code}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise RemoteCapabilityError(CAPABILITY, "DeepLX response was not JSON") from exc
    return data.get("data") if isinstance(data, dict) else None


def _translate_with_google_sync(text: str, target: TargetLanguage) -> str:
    translator = GoogleTranslator(source="auto", target=GOOGLE_CODES[target])
    translated_chunks = []
    for chunk in _chunk_text(text):
        if not chunk.strip():
            continue
        translated = translator.translate(chunk)
        if translated:
            translated_chunks.append(translated)
    return "\n".join(translated_chunks)


async def _translate_with_google(text: str, target: TargetLanguage) -> str:
    try:
        return await asyncio.to_thread(_translate_with_google_sync, text, target)
    except Exception as exc:
        # deep_translator surfaces HTTP and parsing problems as assorted exception types
        logger.error("Google translation failed: %s", exc)
        raise RemoteCapabilityError(CAPABILITY, str(exc) or exc.__class__.__name__) from exc


PageTranslator = Callable[[str], Awaitable[Optional[str]]]


@asynccontextmanager
async def page_translator(provider: Provider, target: TargetLanguage) -> AsyncIterator[PageTranslator]:
    """Yield a per-page translate callable sharing one client for the provider."""
    if isinstance(provider, OpenAIProvider):
        async with _openai_client(provider) as client:
            yield lambda text: _translate_with_openai(client, provider.model, text, target)
    elif isinstance(provider, DeepLXProvider):
        async with _http_client() as client:
            yield lambda text: _translate_with_deeplx(client, provider.api_key, text, target)
    elif isinstance(provider, GoogleProvider):
        yield lambda text: _translate_with_google(text, target)
    else:
        raise InputValidationError(f"Invalid translation provider: {provider!r}")


async def translate_pages(pages: Sequence[str], provider: Provider, target: TargetLanguage = DEFAULT_TARGET) -> List[Optional[str]]:
    """
    Translate every page concurrently. Result i belongs to page i regardless of
    completion order; a page the provider answered with nothing is left as None.
    Every page request settles before the shared client is closed, and the first
    failure (in page order) is raised after that.
    """
    results: List[Optional[str]] = [None] * len(pages)
    if not pages:
        return results

    async with page_translator(provider, target) as translate:
        async def run(index: int, text: str) -> None:
            results[index] = await translate(text)

        outcomes = await asyncio.gather(*(run(i, text) for i, text in enumerate(pages)), return_exceptions=True)

    failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
    if failures:
        logger.error("Translation failed for %d of %d pages via %s", len(failures), len(pages), provider.kind)
        raise failures[0]

    logger.info("Translated %d pages to %s via %s", len(pages), target.value, provider.kind)
    return results


