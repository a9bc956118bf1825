# config.py — настройки бота из окружения (.env подхватывается автоматически)

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _database_url(raw: str) -> str:
    # Heroku-подобные URL: postgres:// → postgresql:// (SQLAlchemy 1.4+ не понимает старую схему)
    if raw.startswith("postgres://"):
        return "postgresql://" + raw[len("postgres://"):]
    return raw


@dataclass(frozen=True)
class Settings:
    telegram_token: Optional[str]
    database_url: str
    openai_api_key: Optional[str]
    openai_base_url: Optional[str]
    analysis_model: str
    tts_model: str
    tts_voice: str
    main_prompt: str
    mixpanel_token: Optional[str]
    support_contact: str
    retry_recheck_entitlement: bool
    log_level: str


DEFAULT_PROMPT = (
    "You are an expert Spanish language tutor. Listen to the user, give grammatical "
    "corrections and feedback in English, then write a natural conversational reply in "
    "Spanish (15-30 words) that ends with a question. Return STRICTLY a JSON object with "
    "exactly two string keys: \"text_analysis\" and \"dialogue_to_speak\"."
)


def load_settings() -> Settings:
    return Settings(
        telegram_token=os.getenv("TELEGRAM_TOKEN"),
        database_url=_database_url(os.getenv("DATABASE_URL", "sqlite:///bot.db")),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        analysis_model=os.getenv("ANALYSIS_MODEL", "gpt-4o-audio-preview"),
        tts_model=os.getenv("TTS_MODEL", "gpt-4o-mini-tts"),
        tts_voice=os.getenv("TTS_VOICE", "coral"),
        main_prompt=os.getenv("MAIN_PROMPT") or DEFAULT_PROMPT,
        mixpanel_token=os.getenv("MIXPANEL_TOKEN") or None,
        support_contact=os.getenv("SUPPORT_CONTACT", "@kamancho_dev"),
        retry_recheck_entitlement=_flag("RETRY_RECHECK_ENTITLEMENT"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
