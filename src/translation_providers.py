"""
Translation service clients.

Every provider exposes the same coroutine, ``translate(text, source_lang,
target_lang)``, and raises TranslationError when a request fails. Callers decide
what to do with failures; providers never fall back on their own.
"""
import asyncio
import random
import re
import uuid
from typing import Dict, Optional, Tuple

import aiohttp
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    OpenAIError,
    RateLimitError
)
from openai.types.chat import (
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam
)

from src.errors import ConfigurationError, TranslationError
from src.logging_config import get_logger

logger = get_logger(__name__)

GOOGLE_TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"


class TranslationProvider:
    """Base class for translation services. Usable as an async context manager."""

    name = "base"

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


def parse_google_response(data) -> str:
    """
    Join the translated segments of a translate_a/single response.

    The payload is a nested array whose first element is a list of
    ``[translated, original, ...]`` segments.
    """
    try:
        segments = data[0]
        return "".join(segment[0] for segment in segments if segment and segment[0])
    except (TypeError, IndexError, KeyError) as exc:
        raise TranslationError(f"Unexpected response structure from Google Translate: {exc}") from exc


class GoogleTranslateProvider(TranslationProvider):
    """Client for the public Google Translate `gtx` endpoint."""

    name = "google"

    def __init__(
            self,
            request_timeout: Optional[float] = None,
            session: Optional[aiohttp.ClientSession] = None,
            url: str = GOOGLE_TRANSLATE_URL
    ):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session = session
        self._owns_session = False

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def _fetch(self, session: aiohttp.ClientSession, params: Dict[str, str]):
        async with session.get(self.url, params=params, timeout=self.timeout) as response:
            if response.status != 200:
                body = await response.text()
                raise TranslationError(f"Google Translate returned HTTP {response.status}: {body[:200]}")
            return await response.json(content_type=None)

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        params = {
            "client": "gtx",
            "sl": source_lang,
            "tl": target_lang,
            "dt": "t",
            "q": text,
        }
        try:
            if self._session is not None:
                data = await self._fetch(self._session, params)
            else:
                # Create a short-lived session when used outside `async with`.
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    data = await self._fetch(session, params)
        except asyncio.TimeoutError as timeout_exc:
            raise TranslationError(f"Google Translate request timed out for target '{target_lang}'") from timeout_exc
        except aiohttp.ClientError as client_exc:
            raise TranslationError(f"Google Translate request failed: {client_exc}") from client_exc
        except ValueError as json_exc:
            raise TranslationError(f"Google Translate returned invalid JSON: {json_exc}") from json_exc

        return parse_google_response(data)


def extract_placeholders(text: str) -> Tuple[str, Dict[str, str]]:
    """
    Extract and replace placeholders in the text with unique tokens.

    Args:
        text (str): The text to process.

    Returns:
        Tuple[str, Dict[str, str]]: The processed text and placeholder mapping.
    """
    if not isinstance(text, str):
        raise ValueError("Input text must be a string.")

    # Matches `{0}`, `{name}`, `%s`/`%d` style format codes and HTML-like tags
    pattern = re.compile(r'(<[^<>]+>)|({[^{}]+})|(%[sd])')
    placeholder_mapping = {}

    def replace_placeholder(match):
        placeholder_token = f"__PH_{uuid.uuid4().hex}__"
        placeholder_mapping[placeholder_token] = match.group(0)
        return placeholder_token

    processed_text = pattern.sub(replace_placeholder, text)
    return processed_text, placeholder_mapping


def restore_placeholders(text: str, placeholder_mapping: Dict[str, str]) -> str:
    for token, placeholder in placeholder_mapping.items():
        text = text.replace(token, placeholder)
    return text


def clean_translated_text(translated_text: str, original_text: str) -> str:
    """
    Remove quotes or square brackets the model wrapped around the translation,
    unless the original text was wrapped the same way.
    """
    if translated_text.startswith('"') and translated_text.endswith('"') and not (
            original_text.startswith('"') and original_text.endswith('"')):
        translated_text = translated_text[1:-1]
    if translated_text.startswith('[') and translated_text.endswith(']') and not (
            original_text.startswith('[') and original_text.endswith(']')):
        translated_text = translated_text[1:-1]
    return translated_text


async def _handle_retry(attempt: int, max_retries: int, base_delay: float,
                        api_exc: Optional[Exception] = None) -> bool:
    """
    Sleep before the next attempt using Retry-After or exponential backoff with jitter.

    Returns:
        bool: True if the caller should retry, False once attempts are exhausted.
    """
    if attempt >= max_retries:
        return False

    retry_after = None
    headers = getattr(getattr(api_exc, "response", None), "headers", None) or {}
    retry_after_header = headers.get("Retry-After") if hasattr(headers, "get") else None
    if retry_after_header:
        if retry_after_header.isdigit():
            retry_after = float(retry_after_header)
        elif retry_after_header.endswith("ms") and retry_after_header[:-2].isdigit():
            retry_after = float(retry_after_header[:-2]) / 1000
    if retry_after is None:
        retry_after = base_delay * (2 ** (attempt - 1)) + random.uniform(0, 1)

    logger.info("Retrying translation request in %.2f seconds (Attempt %d/%d)", retry_after, attempt, max_retries)
    await asyncio.sleep(retry_after)
    return True


class OpenAITranslationProvider(TranslationProvider):
    """Translates through chat completions, keeping placeholders and tags intact."""

    name = "openai"

    SYSTEM_PROMPT = """
You are an expert translator specializing in software localization. Translate the text you are given into the language identified by the code `{target_lang}`.

**Instructions**:
- **Do not translate or modify placeholder tokens**: Any text enclosed within double underscores `__` (e.g., `__PH_abc123__`) must remain exactly as is.
- **Preserve line breaks**; lines that contain only a placeholder-style token separate independent strings and must stay on their own line.
- **Do not add** any additional characters or punctuation (no square brackets, no quotation marks).
- **Provide only** the translated text.
"""

    def __init__(
            self,
            client: AsyncOpenAI,
            model_name: str = "gpt-4o-mini",
            request_timeout: Optional[float] = 60.0,
            max_retries: int = 3,
            base_delay: float = 1.0
    ):
        self.client = client
        self.model_name = model_name
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.base_delay = base_delay

    async def close(self) -> None:
        await self.client.close()

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        processed_text, placeholder_mapping = extract_placeholders(text)
        system_prompt = self.SYSTEM_PROMPT.format(target_lang=target_lang)
        source_hint = "" if source_lang == "auto" else f"Source language code: {source_lang}\n"

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model_name,
                    messages=[
                        ChatCompletionSystemMessageParam(role="system", content=system_prompt),
                        ChatCompletionUserMessageParam(role="user", content=f"{source_hint}{processed_text}")
                    ],
                    temperature=0.3,
                    timeout=self.request_timeout,
                )
            except (RateLimitError, APITimeoutError, APIConnectionError) as api_exc:
                logger.warning("API error occurred: %s - %s", api_exc.__class__.__name__, api_exc)
                if await _handle_retry(attempt, self.max_retries, self.base_delay, api_exc):
                    continue
                raise TranslationError(f"OpenAI translation failed after {self.max_retries} attempts") from api_exc
            except (APIStatusError, OpenAIError) as api_exc:
                raise TranslationError(f"OpenAI translation failed: {api_exc}") from api_exc

            if not response.choices:
                raise TranslationError("OpenAI returned no choices")
            content = response.choices[0].message.content
            if content is None:
                raise TranslationError("OpenAI returned an empty translation")
            translated_text = restore_placeholders(content.strip(), placeholder_mapping)
            return clean_translated_text(translated_text, text)

        raise TranslationError("OpenAI translation loop exited without a result")


def create_provider(config) -> TranslationProvider:
    """
    Build the translation provider selected in the application configuration.

    Args:
        config (AppConfig): The loaded configuration.

    Returns:
        TranslationProvider: The provider instance.
    """
    if config.provider == "google":
        return GoogleTranslateProvider(request_timeout=config.request_timeout)
    if config.provider == "openai":
        if config.openai_client is None:
            raise ConfigurationError("The 'openai' provider requires OPENAI_API_KEY to be set.")
        return OpenAITranslationProvider(
            client=config.openai_client,
            model_name=config.model_name,
            request_timeout=config.request_timeout
        )
    raise ConfigurationError(f"Unknown translation provider '{config.provider}'.")
