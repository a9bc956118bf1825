# bot.py — логирование и регистрация всех хендлеров

import logging

from telegram.ext import Application

# /start, /menu, «Главное меню»
from handlers.start import register_start_handlers
# Кнопки подписки и промокода
from handlers.subscription import register_subscription_handlers
# Pre-checkout и успешная оплата
from handlers.payments import register_payment_handlers
# Промокод, голос, Help / Retry
from handlers.messages import register_message_handlers
# Ловим всё остальное
from handlers.fallback import register_fallback_handler
from handlers.errors import register_error_handler


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s:%(name)s: %(message)s",
        level=getattr(logging, level, logging.INFO),
    )
    # httpx пишет URL запросов, а в них токен бота
    logging.getLogger("httpx").setLevel(logging.WARNING)


def register_handlers(app: Application) -> None:
    # Порядок важен: fallback последним
    register_start_handlers(app)          # /start, /menu
    register_subscription_handlers(app)   # sub_monthly / sub_yearly / promo
    register_payment_handlers(app)        # оплата
    register_message_handlers(app)        # текст и голос
    register_fallback_handler(app)        # всё остальное
    register_error_handler(app)
