import asyncio
import contextlib
import dataclasses
from typing import List, Optional, Sequence

from aiolimiter import AsyncLimiter

from src.errors import TranslationError
from src.lang_file_parser import EntryLine, LineRecord
from src.locales import LocaleTable
from src.logging_config import get_logger
from src.translation_providers import TranslationProvider

logger = get_logger(__name__)

# Separator placed between values when they are sent in a single request.
# Translation services tend to leave it untouched, which lets the response be
# split back into one piece per value.
BATCH_DELIMITER = "___BDT_SEP_9F3A___"
SOURCE_LANGUAGE_AUTO = "auto"


class RequestLimiter:
    """
    Shared throttle for every provider call of a run.

    Combines a semaphore (requests in flight) with an AsyncLimiter
    (requests per time period).
    """

    def __init__(self, max_concurrent: int = 8, rate_limit: float = 60, rate_period: float = 60):
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.rate_limiter = AsyncLimiter(max_rate=rate_limit, time_period=rate_period)

    @contextlib.asynccontextmanager
    async def slot(self):
        async with self.semaphore, self.rate_limiter:
            yield


async def _call_provider(
        provider: TranslationProvider,
        text: str,
        source_lang: str,
        target_lang: str,
        limiter: Optional[RequestLimiter]
) -> str:
    if limiter is None:
        return await provider.translate(text, source_lang, target_lang)
    async with limiter.slot():
        return await provider.translate(text, source_lang, target_lang)


async def _translate_single(
        provider: TranslationProvider,
        value: str,
        source_lang: str,
        target_lang: str,
        limiter: Optional[RequestLimiter]
) -> str:
    """Translate one value, returning it unchanged if the provider fails."""
    try:
        return await _call_provider(provider, value, source_lang, target_lang, limiter)
    except TranslationError as exc:
        logger.warning("Keeping original value, translation to '%s' failed: %s", target_lang, exc)
        return value


async def translate_per_item(
        values: Sequence[str],
        target_lang: str,
        provider: TranslationProvider,
        limiter: Optional[RequestLimiter] = None,
        source_lang: str = SOURCE_LANGUAGE_AUTO
) -> List[str]:
    """
    Translate every value with its own request, all requests running concurrently.

    A failing request never affects its siblings; its value is returned untranslated.
    """
    return list(await asyncio.gather(*(
        _translate_single(provider, value, source_lang, target_lang, limiter)
        for value in values
    )))


async def translate_batch(
        values: Sequence[str],
        target_lang: str,
        provider: TranslationProvider,
        limiter: Optional[RequestLimiter] = None,
        source_lang: str = SOURCE_LANGUAGE_AUTO,
        use_batching: bool = True
) -> List[str]:
    """
    Translate a list of values, trying a single combined request first.

    The values are joined with BATCH_DELIMITER and sent as one request. The
    combined result is only used when it splits back into exactly as many pieces
    as there were values; otherwise every value is translated individually.

    Args:
        values (Sequence[str]): The texts to translate.
        target_lang (str): The translation service language code (e.g. "de").
        provider (TranslationProvider): The translation service.
        limiter (Optional[RequestLimiter]): Throttle shared with other calls.
        source_lang (str): The source language code, "auto" to detect it.
        use_batching (bool): Skip the combined request when False.

    Returns:
        List[str]: The translations, in the same order and of the same length as `values`.
    """
    if not values:
        return []

    if use_batching:
        combined = f"\n{BATCH_DELIMITER}\n".join(values)
        try:
            translated_text = await _call_provider(provider, combined, source_lang, target_lang, limiter)
        except TranslationError as exc:
            logger.warning("Combined request for '%s' failed, translating %d values one by one: %s",
                           target_lang, len(values), exc)
        else:
            parts = translated_text.split(BATCH_DELIMITER)
            if len(parts) == len(values):
                logger.debug("Combined request for '%s' returned %d values.", target_lang, len(parts))
                return [part.strip() for part in parts]
            logger.info("Combined request for '%s' returned %d segments for %d values; "
                        "falling back to one request per value.", target_lang, len(parts), len(values))

    return await translate_per_item(values, target_lang, provider, limiter, source_lang)


async def translate_entries(
        records: Sequence[LineRecord],
        target_locale: str,
        provider: TranslationProvider,
        locale_table: LocaleTable,
        limiter: Optional[RequestLimiter] = None,
        source_lang: str = SOURCE_LANGUAGE_AUTO,
        use_batching: bool = True
) -> List[LineRecord]:
    """
    Translate the values of all entries in a parsed file into one locale.

    Raw lines and entries with an empty value are passed through untouched.
    The input records are not modified.

    Args:
        records (Sequence[LineRecord]): The parsed source file.
        target_locale (str): The locale to translate into (e.g. "de_DE").
        provider (TranslationProvider): The translation service.
        locale_table (LocaleTable): Locale to language code lookup.
        limiter (Optional[RequestLimiter]): Throttle shared with other calls.
        source_lang (str): The source language code.
        use_batching (bool): Whether to try a single combined request first.

    Returns:
        List[LineRecord]: New records, same length and order as `records`.
    """
    target_lang = locale_table.resolve_language_code(target_locale)
    translated: List[LineRecord] = list(records)
    indices: List[int] = []
    values: List[str] = []

    for index, record in enumerate(records):
        if isinstance(record, EntryLine) and record.core.strip():
            indices.append(index)
            values.append(record.core)

    logger.info("Translating %d value(s) into '%s' (%s).", len(values), target_locale, target_lang)
    translated_values = await translate_batch(
        values, target_lang, provider, limiter, source_lang, use_batching
    )

    for position, line_index in enumerate(indices):
        translated_value = translated_values[position] if position < len(translated_values) else None
        if translated_value is None:
            continue
        translated[line_index] = dataclasses.replace(translated[line_index], core=translated_value)

    return translated
