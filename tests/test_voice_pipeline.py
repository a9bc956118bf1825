"""Голосовой конвейер: доступ, кэш неудачных попыток и повтор."""

import base64
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from ai_client import AnalysisResult
from errors import ApiError, DownloadError, ParsingError, TranscodeError
from services.retry_cache import RetryCache
from services.voice_pipeline import (
    DOWNLOAD_FAILED_TEXT,
    NOT_ENTITLED_TEXT,
    NOTHING_TO_RETRY_TEXT,
    PROCESSING_FAILED_TEXT,
    PipelineResult,
    VoiceInput,
    VoicePipeline,
)

WAV = b"RIFF-fake-wav"
WAV_B64 = base64.b64encode(WAV).decode("ascii")


@pytest.fixture
def ai():
    client = MagicMock()
    client.analyze = AsyncMock(return_value=AnalysisResult("Great job!", "¿Y tú, qué haces hoy?"))
    client.synthesize = AsyncMock(return_value=base64.b64encode(b"\x00\x01" * 8).decode("ascii"))
    return client


@pytest.fixture
def cache():
    return RetryCache()


@pytest.fixture
def pipeline(ai, entitlements, transport, cache, analytics):
    entitlements.get_or_create_user(1)
    entitlements.activate_by_payment(1, "sub_monthly", "ch")
    return VoicePipeline(
        ai, entitlements, transport, retry_cache=cache, analytics=analytics,
        to_wav=lambda raw: WAV, to_ogg=lambda b64: b"OggS-reply",
    )


def _texts(transport):
    return [t[1] for t in transport.texts]


async def test_success_delivers_text_audio_and_reply(pipeline, ai, transport, cache):
    result = await pipeline.process(1, VoiceInput(file_id="file-1"))

    assert result is PipelineResult.DELIVERED
    assert transport.downloads == ["file-1"]
    ai.analyze.assert_awaited_once_with(WAV_B64)
    ai.synthesize.assert_awaited_once_with("¿Y tú, qué haces hoy?")
    assert "Great job!" in _texts(transport)
    assert transport.audios == [(1, b"OggS-reply")]
    assert _texts(transport)[-1].startswith("📝 Response text:\n||")
    assert 1 not in cache


async def test_not_entitled_is_rejected_without_external_calls(ai, entitlements, transport, cache):
    entitlements.get_or_create_user(2)
    pipeline = VoicePipeline(ai, entitlements, transport, retry_cache=cache,
                             to_wav=lambda raw: WAV, to_ogg=lambda b64: b"ogg")

    result = await pipeline.process(2, VoiceInput(file_id="file-2"))

    assert result is PipelineResult.NOT_ENTITLED
    assert _texts(transport) == [NOT_ENTITLED_TEXT]
    assert transport.downloads == []
    ai.analyze.assert_not_awaited()
    assert 2 not in cache


async def test_retry_with_empty_cache_reports_nothing(pipeline, ai, transport):
    result = await pipeline.process(1)

    assert result is PipelineResult.NOTHING_TO_RETRY
    assert _texts(transport) == [NOTHING_TO_RETRY_TEXT]
    ai.analyze.assert_not_awaited()


async def test_analysis_failure_then_retry_reuses_cached_audio(pipeline, ai, transport, cache, analytics):
    ai.analyze.side_effect = [ApiError("Analysis request error: connection reset"), ai.analyze.return_value]

    first = await pipeline.process(1, VoiceInput(file_id="file-1"))
    assert first is PipelineResult.FAILED
    assert PROCESSING_FAILED_TEXT in _texts(transport)
    assert cache.get(1) == VoiceInput(file_id="file-1", audio_b64=WAV_B64)
    assert "error_occurred" in analytics.names()

    second = await pipeline.process(1)
    assert second is PipelineResult.DELIVERED
    assert transport.downloads == ["file-1"]  # повтор не скачивает заново
    assert ai.analyze.await_count == 2
    assert ai.analyze.await_args_list[1].args == (WAV_B64,)
    assert 1 not in cache


async def test_failed_retry_keeps_payload_for_another_retry(pipeline, ai, cache):
    ai.synthesize.side_effect = ParsingError("No audio data in TTS response")
    await pipeline.process(1, VoiceInput(file_id="file-1"))
    assert 1 in cache

    assert await pipeline.process(1) is PipelineResult.FAILED
    assert cache.get(1).audio_b64 == WAV_B64


async def test_download_failure_caches_reference_for_retry(pipeline, ai, transport, cache):
    transport.download_error = DownloadError("telegram timeout")

    assert await pipeline.process(1, VoiceInput(file_id="file-9")) is PipelineResult.FAILED
    assert _texts(transport) == [DOWNLOAD_FAILED_TEXT]
    assert cache.get(1) == VoiceInput(file_id="file-9")
    ai.analyze.assert_not_awaited()

    transport.download_error = None
    assert await pipeline.process(1) is PipelineResult.DELIVERED
    assert transport.downloads == ["file-9", "file-9"]


async def test_transcode_failure_is_a_processing_failure(ai, entitlements, transport, cache):
    entitlements.get_or_create_user(3)
    entitlements.activate_by_promo(3, "TRIAL3")

    def broken(_b64):
        raise TranscodeError("ffmpeg missing")

    pipeline = VoicePipeline(ai, entitlements, transport, retry_cache=cache,
                             to_wav=lambda raw: WAV, to_ogg=broken)
    assert await pipeline.process(3, VoiceInput(audio_b64=WAV_B64)) is PipelineResult.FAILED
    assert transport.audios == []
    assert 3 in cache


async def test_retry_skips_entitlement_check_by_default(pipeline, ai, cache, clock):
    cache.put(1, VoiceInput(audio_b64=WAV_B64))
    clock.now = datetime(2024, 6, 1)  # подписка давно истекла

    assert await pipeline.process(1) is PipelineResult.DELIVERED


async def test_retry_can_recheck_entitlement(ai, entitlements, transport, cache, clock):
    entitlements.get_or_create_user(4)
    entitlements.activate_by_promo(4, "TRIAL3")
    pipeline = VoicePipeline(ai, entitlements, transport, retry_cache=cache, recheck_on_retry=True,
                             to_wav=lambda raw: WAV, to_ogg=lambda b64: b"ogg")
    cache.put(4, VoiceInput(audio_b64=WAV_B64))
    clock.now = datetime(2024, 6, 1)

    assert await pipeline.process(4) is PipelineResult.NOT_ENTITLED
    ai.analyze.assert_not_awaited()
    assert 4 in cache
