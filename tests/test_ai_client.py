"""Клиент анализа/синтеза: разбор ответа и перевод ошибок SDK."""

import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from ai_client import VoiceAIClient, parse_analysis
from errors import ApiError, ParsingError

REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat/completions")


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def sdk():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.audio.speech.create = AsyncMock()
    return client


@pytest.fixture
def ai(sdk):
    return VoiceAIClient(sdk, prompt="tutor prompt")


class TestParseAnalysis:
    def test_plain_json(self):
        result = parse_analysis(json.dumps({"text_analysis": "Bien", "dialogue_to_speak": "¿Qué tal?"}))
        assert result.feedback_text == "Bien"
        assert result.reply_text == "¿Qué tal?"

    def test_json_wrapped_in_markdown_fence(self):
        content = '```json\n{"text_analysis": "ok", "dialogue_to_speak": "Hola"}\n```'
        assert parse_analysis(content).reply_text == "Hola"

    @pytest.mark.parametrize("content", [
        None,
        "",
        "not json at all",
        json.dumps(["list"]),
        json.dumps({"text_analysis": "only one key"}),
        json.dumps({"text_analysis": {"nested": 1}, "dialogue_to_speak": "x"}),
    ])
    def test_malformed(self, content):
        with pytest.raises(ParsingError):
            parse_analysis(content)


class TestAnalyze:
    async def test_sends_audio_and_prompt(self, ai, sdk):
        sdk.chat.completions.create.return_value = _completion(
            json.dumps({"text_analysis": "Nice", "dialogue_to_speak": "¿Y luego?"})
        )

        result = await ai.analyze("QUJD")

        assert result.reply_text == "¿Y luego?"
        kwargs = sdk.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "tutor prompt"}
        audio_part = kwargs["messages"][1]["content"][0]
        assert audio_part["input_audio"] == {"data": "QUJD", "format": "wav"}

    async def test_http_status_error_becomes_api_error(self, ai, sdk):
        response = httpx.Response(503, request=REQUEST, text="overloaded")
        sdk.chat.completions.create.side_effect = openai.InternalServerError(
            "overloaded", response=response, body=None
        )
        with pytest.raises(ApiError) as exc:
            await ai.analyze("QUJD")
        assert exc.value.response_body == "overloaded"

    async def test_connection_error_becomes_api_error(self, ai, sdk):
        sdk.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)
        with pytest.raises(ApiError):
            await ai.analyze("QUJD")

    async def test_empty_choices(self, ai, sdk):
        sdk.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(ParsingError):
            await ai.analyze("QUJD")


class TestSynthesize:
    async def test_returns_base64_pcm(self, ai, sdk):
        sdk.audio.speech.create.return_value = SimpleNamespace(content=b"\x01\x02\x03\x04")

        audio_b64 = await ai.synthesize("Hola")

        assert base64.b64decode(audio_b64) == b"\x01\x02\x03\x04"
        kwargs = sdk.audio.speech.create.await_args.kwargs
        assert kwargs["response_format"] == "pcm"
        assert kwargs["input"] == "Hola"

    async def test_empty_audio(self, ai, sdk):
        sdk.audio.speech.create.return_value = SimpleNamespace(content=b"")
        with pytest.raises(ParsingError):
            await ai.synthesize("Hola")

    async def test_status_error(self, ai, sdk):
        response = httpx.Response(400, request=REQUEST, text="bad voice")
        sdk.audio.speech.create.side_effect = openai.BadRequestError(
            "bad voice", response=response, body=None
        )
        with pytest.raises(ApiError):
            await ai.synthesize("Hola")


def test_from_settings_disables_sdk_retries():
    settings = SimpleNamespace(
        openai_api_key="sk-test", openai_base_url=None, main_prompt="p",
        analysis_model="m1", tts_model="m2", tts_voice="v",
    )
    client = VoiceAIClient.from_settings(settings)
    assert client.client.max_retries == 0
    assert (client.analysis_model, client.tts_model, client.tts_voice) == ("m1", "m2", "v")
