# main.py

# ==============================
# Stage 6: Точка входа и запуск бота
# ==============================

import asyncio
import logging

from sqlalchemy import create_engine
from telegram import Update
from telegram.ext import Application, ApplicationBuilder

# Stage 6.1: настройки и регистрация хендлеров
from config import Settings, load_settings
from bot import register_handlers, setup_logging

# Stage 6.2: хранилище, сервисы и внешние клиенты
from models import init_db
from user_repo import UserRepository
from grant_repo import GrantRepository
from promo_repo import PromoRepository
from analytics import create_analytics
from ai_client import VoiceAIClient
from services.entitlement_service import EntitlementService
from services.payment_reconciler import PaymentReconciler
from services.retry_cache import RetryCache
from services.transport import TelegramTransport
from services.voice_pipeline import VoicePipeline
from utils.state import PromoWaiting

logger = logging.getLogger(__name__)


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # хендлеры работают параллельно; ждём блокировку записи, а не падаем
        return create_engine(
            database_url, connect_args={"check_same_thread": False, "timeout": 30}
        )
    return create_engine(database_url, pool_pre_ping=True)


async def _bind_analytics(app: Application) -> None:
    # события из хендлеров, ушедших в to_thread, доставляются в цикл бота
    app.bot_data["analytics"].bind_loop(asyncio.get_running_loop())


async def _close_analytics(app: Application) -> None:
    await app.bot_data["analytics"].aclose()


def build_application(settings: Settings, engine=None) -> Application:
    # Stage 6.3: БД и таблицы
    engine = engine if engine is not None else make_engine(settings.database_url)
    init_db(engine)

    # Stage 6.4: сервисы собираются один раз и кладутся в bot_data
    analytics = create_analytics(settings.mixpanel_token)
    entitlements = EntitlementService(
        UserRepository(engine), GrantRepository(engine), PromoRepository(engine), analytics
    )
    reconciler = PaymentReconciler(entitlements, analytics)

    # Stage 6.5: Telegram-бот; апдейты обрабатываются параллельно
    app = (
        ApplicationBuilder()
        .token(settings.telegram_token)
        .concurrent_updates(True)
        .post_init(_bind_analytics)
        .post_shutdown(_close_analytics)
        .build()
    )
    pipeline = VoicePipeline(
        VoiceAIClient.from_settings(settings),
        entitlements,
        TelegramTransport(app.bot),
        retry_cache=RetryCache(),
        analytics=analytics,
        recheck_on_retry=settings.retry_recheck_entitlement,
    )

    app.bot_data["settings"]      = settings
    app.bot_data["analytics"]     = analytics
    app.bot_data["entitlements"]  = entitlements
    app.bot_data["reconciler"]    = reconciler
    app.bot_data["pipeline"]      = pipeline
    app.bot_data["promo_waiting"] = PromoWaiting()

    # Stage 6.6: регистрация хендлеров
    register_handlers(app)
    return app


def main():
    settings = load_settings()
    setup_logging(settings.log_level)
    if not settings.telegram_token:
        raise SystemExit("TELEGRAM_TOKEN is not set")

    app = build_application(settings)
    logger.info("Bot started")
    # Stage 6.7: запуск polling
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
