# utils/audio.py — перекодирование аудио (нужен ffmpeg в системе)

import base64
import io

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError

from errors import TranscodeError

# ответ синтеза: сырой PCM s16le, 24 кГц, моно
PCM_SAMPLE_WIDTH = 2
PCM_FRAME_RATE = 24000
PCM_CHANNELS = 1


def pcm_to_ogg_opus(audio_b64: str) -> bytes:
    """base64 PCM → Ogg/Opus, который Telegram принимает как voice."""
    try:
        pcm = base64.b64decode(audio_b64, validate=True)
        segment = AudioSegment(
            data=pcm,
            sample_width=PCM_SAMPLE_WIDTH,
            frame_rate=PCM_FRAME_RATE,
            channels=PCM_CHANNELS,
        )
        out = io.BytesIO()
        segment.export(out, format="ogg", codec="libopus")
        return out.getvalue()
    except (ValueError, OSError, CouldntEncodeError) as e:
        raise TranscodeError(f"PCM → Ogg/Opus failed: {e}") from e


def ogg_to_wav(data: bytes) -> bytes:
    """Голосовое Telegram (ogg) → wav для модели анализа."""
    try:
        audio = AudioSegment.from_file(io.BytesIO(data), format="ogg")
        wav_io = io.BytesIO()
        audio.export(wav_io, format="wav")
        return wav_io.getvalue()
    except (OSError, CouldntDecodeError) as e:
        raise TranscodeError(f"ogg → wav failed: {e}") from e
