# ai_client.py

# ======================================================
# Внешний ИИ: анализ голоса (текст + реплика) и синтез речи
# ======================================================

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import openai
from openai import AsyncOpenAI

from errors import ApiError, ParsingError

logger = logging.getLogger(__name__)

# Таймауты фиксированные, в настройки не выносятся
REQUEST_TIMEOUT = httpx.Timeout(30.0, connect=30.0)


@dataclass(frozen=True)
class AnalysisResult:
    feedback_text: str  # разбор ошибок для пользователя
    reply_text: str     # реплика, которую бот произносит голосом


def _extract_json(content: str) -> Any:
    """Сначала как есть, затем — самый широкий фрагмент {...}."""
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        start = content.find("{")
        end = content.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(content[start:end + 1])


def parse_analysis(content: Optional[str]) -> AnalysisResult:
    if not content or not content.strip():
        raise ParsingError("No text in analysis response")
    try:
        data = _extract_json(content.strip())
    except json.JSONDecodeError as e:
        raise ParsingError(f"Failed to parse analysis response: {e}") from e

    if not isinstance(data, dict):
        raise ParsingError("Analysis response is not a JSON object")
    feedback = data.get("text_analysis")
    reply = data.get("dialogue_to_speak")
    if not isinstance(feedback, str) or not feedback.strip():
        raise ParsingError("Missing text_analysis")
    if not isinstance(reply, str) or not reply.strip():
        raise ParsingError("Missing dialogue_to_speak")
    return AnalysisResult(feedback_text=feedback.strip(), reply_text=reply.strip())


class VoiceAIClient:
    """
    Два независимых вызова: analyze() и synthesize(). Ни один не повторяется
    автоматически (max_retries=0), любая ошибка — ApiError / ParsingError.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        prompt: str,
        analysis_model: str = "gpt-4o-audio-preview",
        tts_model: str = "gpt-4o-mini-tts",
        tts_voice: str = "coral",
    ):
        self.client = client
        self.prompt = prompt
        self.analysis_model = analysis_model
        self.tts_model = tts_model
        self.tts_voice = tts_voice

    @classmethod
    def from_settings(cls, settings) -> "VoiceAIClient":
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=REQUEST_TIMEOUT,
            max_retries=0,
        )
        return cls(
            client,
            prompt=settings.main_prompt,
            analysis_model=settings.analysis_model,
            tts_model=settings.tts_model,
            tts_voice=settings.tts_voice,
        )

    # Шаг 1: голос (wav, base64) → разбор + реплика
    async def analyze(self, audio_b64: str, audio_format: str = "wav") -> AnalysisResult:
        logger.info("Starting voice analysis, audio size: %s", len(audio_b64))
        try:
            resp = await self.client.chat.completions.create(
                model=self.analysis_model,
                modalities=["text"],
                temperature=0.5,
                messages=[
                    {"role": "system", "content": self.prompt},
                    {"role": "user", "content": [
                        {"type": "input_audio", "input_audio": {"data": audio_b64, "format": audio_format}},
                        {"type": "text", "text": "Here is my audio recording."},
                    ]},
                ],
            )
        except openai.APIStatusError as e:
            logger.error("Analysis failed: %s - %s", e.status_code, e.response.text)
            raise ApiError(f"Analysis failed: {e.status_code}", e.response.text) from e
        except openai.APIError as e:
            logger.error("Analysis request error: %s", e)
            raise ApiError(f"Analysis request error: {e}") from e

        if not resp.choices:
            raise ParsingError("No choices in analysis response")
        result = parse_analysis(resp.choices[0].message.content)
        logger.info("Analysis complete, reply: %s", result.reply_text)
        return result

    # Шаг 2: текст → PCM (base64)
    async def synthesize(self, text: str) -> str:
        logger.debug("Generating speech for text: %s", text)
        try:
            resp = await self.client.audio.speech.create(
                model=self.tts_model,
                voice=self.tts_voice,
                input=text,
                response_format="pcm",
            )
        except openai.APIStatusError as e:
            logger.error("TTS failed: %s - %s", e.status_code, e.response.text)
            raise ApiError(f"TTS failed: {e.status_code}", e.response.text) from e
        except openai.APIError as e:
            logger.error("TTS request error: %s", e)
            raise ApiError(f"TTS request error: {e}") from e

        audio = resp.content
        if not audio:
            raise ParsingError("No audio data in TTS response")
        logger.info("TTS complete: audio size %s", len(audio))
        return base64.b64encode(audio).decode("ascii")
