# services/voice_pipeline.py
# ======================================================
# Голос → проверка доступа → анализ → синтез → ответ пользователю
# При сбое любого шага голос кэшируется, пользователь может нажать «Повторить».
# ======================================================

import asyncio
import base64
import enum
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from telegram.constants import ParseMode
from telegram.helpers import escape_markdown

from ai_client import VoiceAIClient
from analytics import Analytics
from errors import ExternalServiceError
from services.entitlement_service import EntitlementService
from services.retry_cache import RetryCache
from utils.audio import ogg_to_wav, pcm_to_ogg_opus
from utils.keyboards import main_kb, offers_kb, retry_kb

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceInput:
    # ссылка на файл в Telegram; нужна, пока голос не скачан
    file_id: Optional[str] = None
    # скачанный и перекодированный в wav голос (base64)
    audio_b64: Optional[str] = None


class PipelineResult(enum.Enum):
    DELIVERED = "delivered"
    NOT_ENTITLED = "not_entitled"
    NOTHING_TO_RETRY = "nothing_to_retry"
    FAILED = "failed"


NOT_ENTITLED_TEXT = (
    "⚠️ *No active subscription*\n\n"
    "You need an active subscription to use this feature.\n\n"
    "Click /start to subscribe!"
)
NOTHING_TO_RETRY_TEXT = (
    "🎤 *Send a voice message*\n\n"
    "I don't have a saved message to retry.\n\n"
    "Please send a new voice message."
)
ANALYZING_TEXT = "🔄 Analyzing your message... (this may take a few seconds)"
DOWNLOAD_FAILED_TEXT = (
    "❌ *Download error*\n\n"
    "Failed to download your voice message.\n\n"
    "Click \"🔄 Retry\" to try again or send it once more."
)
PROCESSING_FAILED_TEXT = (
    "❌ *Processing error*\n\n"
    "An error occurred while analyzing your voice message.\n\n"
    "Click \"🔄 Retry\" to try again with the same audio."
)


class VoicePipeline:
    """
    process(user_id, voice) — новое голосовое; process(user_id) — повтор из кэша.

    Доступ проверяется только для нового голосового. Повтор по умолчанию доступ
    не перепроверяет (recheck_on_retry=False): пользователь, у которого подписка
    истекла между сбоем и повтором, получит ещё один ответ.
    """

    def __init__(
        self,
        ai: VoiceAIClient,
        entitlements: EntitlementService,
        transport,
        retry_cache: Optional[RetryCache] = None,
        analytics: Optional[Analytics] = None,
        recheck_on_retry: bool = False,
        to_wav: Callable[[bytes], bytes] = ogg_to_wav,
        to_ogg: Callable[[str], bytes] = pcm_to_ogg_opus,
    ):
        self.ai = ai
        self.entitlements = entitlements
        self.transport = transport
        self.retry_cache = retry_cache if retry_cache is not None else RetryCache()
        self.analytics = analytics or Analytics()
        self.recheck_on_retry = recheck_on_retry
        self.to_wav = to_wav
        self.to_ogg = to_ogg

    async def process(self, user_id: int, voice: Optional[VoiceInput] = None) -> PipelineResult:
        is_retry = voice is None
        if is_retry:
            voice = self.retry_cache.get(user_id)
            if voice is None:
                logger.info("No stored voice message to retry for %s", user_id)
                await self.transport.send_text(
                    user_id, NOTHING_TO_RETRY_TEXT, main_kb(), ParseMode.MARKDOWN
                )
                return PipelineResult.NOTHING_TO_RETRY
            logger.info("Retrying stored voice message for %s", user_id)

        if not is_retry or self.recheck_on_retry:
            entitled = await asyncio.to_thread(self.entitlements.is_entitled, user_id)
            if not entitled:
                logger.info("User %s is not entitled, voice rejected", user_id)
                await self.transport.send_text(
                    user_id, NOT_ENTITLED_TEXT, offers_kb(), ParseMode.MARKDOWN
                )
                return PipelineResult.NOT_ENTITLED

        # 1) скачать или взять из кэша
        try:
            voice = await self._ensure_audio(voice)
        except ExternalServiceError as e:
            self._remember_failure(user_id, voice, e, stage="download")
            await self.transport.send_text(
                user_id, DOWNLOAD_FAILED_TEXT, retry_kb(), ParseMode.MARKDOWN
            )
            return PipelineResult.FAILED

        await self.transport.send_text(user_id, ANALYZING_TEXT, main_kb())
        await self.transport.send_action(user_id)

        # 2) анализ → 3) синтез → перекодирование
        try:
            analysis = await self.ai.analyze(voice.audio_b64)
            speech_b64 = await self.ai.synthesize(analysis.reply_text)
            ogg = await asyncio.to_thread(self.to_ogg, speech_b64)
        except ExternalServiceError as e:
            self._remember_failure(user_id, voice, e, stage="processing")
            await self.transport.send_text(
                user_id, PROCESSING_FAILED_TEXT, retry_kb(), ParseMode.MARKDOWN
            )
            return PipelineResult.FAILED

        # 4) успех: кэш чистим до доставки
        self.retry_cache.remove(user_id)
        await self.transport.send_text(user_id, analysis.feedback_text, main_kb())
        await self.transport.send_audio(user_id, ogg)
        await self.transport.send_text(
            user_id,
            "📝 Response text:\n||" + escape_markdown(analysis.reply_text, version=2) + "||",
            main_kb(),
            ParseMode.MARKDOWN_V2,
        )
        return PipelineResult.DELIVERED

    async def _ensure_audio(self, voice: VoiceInput) -> VoiceInput:
        if voice.audio_b64:
            return voice
        if not voice.file_id:
            raise ExternalServiceError("voice input has neither audio nor file reference")
        raw = await self.transport.download_voice(voice.file_id)
        wav = await asyncio.to_thread(self.to_wav, raw)
        return replace(voice, audio_b64=base64.b64encode(wav).decode("ascii"))

    def _remember_failure(self, user_id: int, voice: VoiceInput, error: Exception, stage: str) -> None:
        # перезаписываем даже при повторе, так возможен ещё один повтор
        self.retry_cache.put(user_id, voice)
        logger.warning("Voice %s failed for %s: %s", stage, user_id, error, exc_info=error)
        try:
            self.analytics.track_error(error, user_id, {"feature": "voice_processing", "stage": stage})
        except Exception:
            logger.exception("Failed to emit error event for %s", user_id)
