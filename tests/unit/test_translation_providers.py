import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import httpx
from openai import APIConnectionError

from src.batch_translator import translate_per_item
from src.errors import ConfigurationError, TranslationError
from src.translation_providers import (
    GOOGLE_TRANSLATE_URL,
    GoogleTranslateProvider,
    OpenAITranslationProvider,
    clean_translated_text,
    create_provider,
    extract_placeholders,
    parse_google_response,
    restore_placeholders
)


class FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self.payload = payload

    async def json(self, content_type=None):
        return self.payload

    async def text(self):
        return str(self.payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        if self.error:
            raise self.error
        return self.response


def _chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestParseGoogleResponse(unittest.TestCase):

    def test_joins_first_element_of_each_segment(self):
        payload = [[["Hallo ", "Hello ", None, None], ["Welt", "World", None, None]], None, "en"]
        self.assertEqual(parse_google_response(payload), "Hallo Welt")

    def test_malformed_payload_raises(self):
        with self.assertRaises(TranslationError):
            parse_google_response(None)
        with self.assertRaises(TranslationError):
            parse_google_response([5])


class TestGoogleTranslateProvider(unittest.IsolatedAsyncioTestCase):

    async def test_sends_gtx_query_and_parses_segments(self):
        session = FakeSession(FakeResponse(200, [[["Bonjour", "Hello"]], None, "en"]))
        provider = GoogleTranslateProvider(session=session)

        result = await provider.translate("Hello", "auto", "fr")

        self.assertEqual(result, "Bonjour")
        url, params = session.requests[0]
        self.assertEqual(url, GOOGLE_TRANSLATE_URL)
        self.assertEqual(params, {"client": "gtx", "sl": "auto", "tl": "fr", "dt": "t", "q": "Hello"})

    async def test_http_error_raises_translation_error(self):
        provider = GoogleTranslateProvider(session=FakeSession(FakeResponse(429, "Too Many Requests")))
        with self.assertRaises(TranslationError):
            await provider.translate("Hello", "auto", "de")

    async def test_connection_error_raises_translation_error(self):
        provider = GoogleTranslateProvider(session=FakeSession(error=aiohttp.ClientConnectionError("down")))
        with self.assertRaises(TranslationError):
            await provider.translate("Hello", "auto", "de")

    async def test_timeout_raises_translation_error(self):
        provider = GoogleTranslateProvider(session=FakeSession(error=asyncio.TimeoutError()))
        with self.assertRaises(TranslationError):
            await provider.translate("Hello", "auto", "de")

    async def test_injected_session_is_not_closed(self):
        session = FakeSession(FakeResponse(200, [[["x", "y"]]]))
        session.close = AsyncMock()
        async with GoogleTranslateProvider(session=session) as provider:
            await provider.translate("y", "auto", "de")
        session.close.assert_not_called()


class TestOpenAITranslationProvider(unittest.IsolatedAsyncioTestCase):

    def _provider(self, create_mock):
        client = MagicMock()
        client.chat.completions.create = create_mock
        return OpenAITranslationProvider(client=client, model_name="test-model", base_delay=0)

    async def test_placeholders_are_protected_and_restored(self):
        async def fake_create(**kwargs):
            user_message = kwargs["messages"][1]["content"]
            self.assertNotIn("{0}", user_message)
            self.assertNotIn("<b>", user_message)
            return _chat_response('"' + user_message.replace("You have", "Du hast") + '"')

        provider = self._provider(AsyncMock(side_effect=fake_create))
        result = await provider.translate("You have <b>{0}</b> coins", "auto", "de")

        self.assertEqual(result, "Du hast <b>{0}</b> coins")

    async def test_connection_errors_are_retried(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=[APIConnectionError(request=request), _chat_response("Hallo")])
        provider = self._provider(create)

        with patch("src.translation_providers.asyncio.sleep", new_callable=AsyncMock):
            result = await provider.translate("Hello", "auto", "de")

        self.assertEqual(result, "Hallo")
        self.assertEqual(create.await_count, 2)

    async def test_exhausted_retries_raise_translation_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=APIConnectionError(request=request))
        provider = self._provider(create)

        with patch("src.translation_providers.asyncio.sleep", new_callable=AsyncMock):
            with self.assertRaises(TranslationError):
                await provider.translate("Hello", "auto", "de")

        self.assertEqual(create.await_count, provider.max_retries)

    async def test_empty_content_raises_translation_error(self):
        provider = self._provider(AsyncMock(return_value=_chat_response(None)))
        with self.assertRaises(TranslationError):
            await provider.translate("Hello", "auto", "de")

    async def test_no_choices_raises_translation_error(self):
        provider = self._provider(AsyncMock(return_value=SimpleNamespace(choices=[])))
        with self.assertRaises(TranslationError):
            await provider.translate("Hello", "auto", "de")

    async def test_no_choices_keeps_original_value(self):
        async def fake_create(**kwargs):
            if kwargs["messages"][1]["content"] == "Hello":
                return SimpleNamespace(choices=[])
            return _chat_response("Welt")

        provider = self._provider(AsyncMock(side_effect=fake_create))

        result = await translate_per_item(["Hello", "World"], "de", provider)

        self.assertEqual(result, ["Hello", "Welt"])


class TestPlaceholderProtection(unittest.TestCase):

    def test_each_occurrence_gets_its_own_token(self):
        original = "{0} of {0} <i>%s</i>"
        processed, mapping = extract_placeholders(original)

        self.assertEqual(sorted(mapping.values()), ["%s", "</i>", "<i>", "{0}", "{0}"])
        for token in mapping:
            self.assertEqual(processed.count(token), 1)
        self.assertEqual(restore_placeholders(processed, mapping), original)

    def test_plain_text_is_left_alone(self):
        self.assertEqual(extract_placeholders("100% sure"), ("100% sure", {}))

    def test_non_string_input_is_rejected(self):
        with self.assertRaises(ValueError):
            extract_placeholders(None)

    def test_reordered_tokens_are_restored(self):
        processed, mapping = extract_placeholders("{count} files in {folder}")
        count_token, folder_token = list(mapping)

        translated = f"In {folder_token}: {count_token} Dateien"

        self.assertEqual(restore_placeholders(translated, mapping), "In {folder}: {count} Dateien")

    def test_wrappers_added_by_the_model_are_removed(self):
        self.assertEqual(clean_translated_text('"Spielen"', "Play"), "Spielen")
        self.assertEqual(clean_translated_text("[Spielen]", "Play"), "Spielen")

    def test_wrappers_from_the_source_are_kept(self):
        self.assertEqual(clean_translated_text('"Spielen"', '"Play"'), '"Spielen"')
        self.assertEqual(clean_translated_text("[Spielen]", "[Play]"), "[Spielen]")


class TestCreateProvider(unittest.TestCase):

    def test_google_provider(self):
        config = SimpleNamespace(provider="google", request_timeout=5.0)
        provider = create_provider(config)
        self.assertIsInstance(provider, GoogleTranslateProvider)
        self.assertEqual(provider.timeout.total, 5.0)

    def test_openai_provider_requires_client(self):
        config = SimpleNamespace(provider="openai", openai_client=None, model_name="m", request_timeout=None)
        with self.assertRaises(ConfigurationError):
            create_provider(config)

    def test_unknown_provider(self):
        with self.assertRaises(ConfigurationError):
            create_provider(SimpleNamespace(provider="babelfish"))


if __name__ == '__main__':
    unittest.main()
