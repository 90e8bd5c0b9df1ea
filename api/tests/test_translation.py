import asyncio

import httpx
import pytest

from ayursutra.errors import TranslationFailed
from ayursutra.services.translation import (
    GoogleTranslateProvider,
    TaggingProvider,
    TranslationBridge,
    TranslationProvider,
    build_provider,
)

from conftest import RecordingProvider


class ExplodingProvider(TranslationProvider):
    name = "exploding"

    async def translate(self, text, source, target):
        raise AssertionError("provider must not be called")


class FixedProvider(TranslationProvider):
    name = "fixed"

    def __init__(self, result):
        self.result = result

    async def translate(self, text, source, target):
        return self.result


class SlowProvider(TranslationProvider):
    name = "slow"

    async def translate(self, text, source, target):
        await asyncio.sleep(1)
        return text


@pytest.mark.asyncio
@pytest.mark.parametrize("source,target", [("en-US", "en-US"), ("en-GB", "en-US"), ("en", "en-IN")])
async def test_english_to_english_is_identity(source, target):
    bridge = TranslationBridge(ExplodingProvider())

    text = "Drink warm water. This is AI-generated advice."
    assert await bridge.translate(text, source, target) == text


@pytest.mark.asyncio
async def test_same_language_pair_skips_provider():
    bridge = TranslationBridge(ExplodingProvider())
    assert await bridge.translate("नमस्ते", "hi-IN", "hi") == "नमस्ते"


@pytest.mark.asyncio
async def test_other_directions_call_provider():
    calls = []
    bridge = TranslationBridge(RecordingProvider(calls))

    assert await bridge.translate("नमस्ते", "hi-IN", "en-US") == "[en-US] नमस्ते"
    assert await bridge.translate("Hello", "en-US", "mr-IN") == "[mr-IN] Hello"
    assert [c[1:3] for c in calls] == [("hi-IN", "en-US"), ("en-US", "mr-IN")]


@pytest.mark.asyncio
async def test_tagging_provider_prefixes_language_code():
    bridge = TranslationBridge(TaggingProvider())

    assert await bridge.translate("Rest well", "en-US", "hi-IN") == "[hi] Rest well"
    assert await bridge.translate("आराम करें", "hi-IN", "en-US") == "आराम करें"


@pytest.mark.asyncio
async def test_provider_error_raises_translation_failed():
    bridge = TranslationBridge(RecordingProvider([], fail=True))

    with pytest.raises(TranslationFailed):
        await bridge.translate("Hello", "en-US", "hi-IN")


@pytest.mark.asyncio
@pytest.mark.parametrize("result", ["", "   ", None])
async def test_empty_translation_is_a_failure(result):
    bridge = TranslationBridge(FixedProvider(result))

    with pytest.raises(TranslationFailed):
        await bridge.translate("Hello", "en-US", "hi-IN")


@pytest.mark.asyncio
async def test_slow_provider_times_out():
    bridge = TranslationBridge(SlowProvider(), timeout_s=0.01)

    with pytest.raises(TranslationFailed, match="timed out"):
        await bridge.translate("Hello", "en-US", "hi-IN")


def _google(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleTranslateProvider(client, api_key, "https://translate.test/v2")


@pytest.mark.asyncio
async def test_google_provider_sends_primary_subtags():
    seen = {}

    def handler(request: httpx.Request):
        seen["key"] = request.url.params["key"]
        seen["body"] = request.read()
        return httpx.Response(200, json={"data": {"translations": [{"translatedText": "नमस्ते"}]}})

    provider = _google(handler)
    result = await provider.translate("Hello", "en-US", "hi-IN")

    assert result == "नमस्ते"
    assert seen["key"] == "test-key"
    assert b'"source":"en"' in seen["body"].replace(b" ", b"")
    assert b'"target":"hi"' in seen["body"].replace(b" ", b"")


@pytest.mark.asyncio
async def test_google_provider_error_status():
    provider = _google(lambda request: httpx.Response(403, json={"error": {"message": "forbidden"}}))

    with pytest.raises(TranslationFailed, match="403"):
        await provider.translate("Hello", "en-US", "hi-IN")


@pytest.mark.asyncio
async def test_google_provider_without_key_fails():
    provider = _google(lambda request: httpx.Response(200), api_key="")

    with pytest.raises(TranslationFailed):
        await provider.translate("Hello", "en-US", "hi-IN")


def test_build_provider_rejects_unknown_name():
    assert build_provider("tagging").name == "tagging"
    with pytest.raises(ValueError):
        build_provider("babelfish")
