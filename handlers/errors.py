# handlers/errors.py — всё, что долетело из хендлеров до Application

import logging

from telegram import Update
from telegram.ext import ContextTypes

from errors import StoreUnavailable

logger = logging.getLogger(__name__)

GENERIC_FAILURE_TEXT = "⚠️ Something went wrong on our side. Please try again in a minute."


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE):
    error = context.error
    user_id = None
    chat_id = None
    if isinstance(update, Update):
        if update.effective_user:
            user_id = update.effective_user.id
        if update.effective_chat:
            chat_id = update.effective_chat.id

    if isinstance(error, StoreUnavailable):
        logger.error("Store unavailable while handling update for %s: %s", user_id, error)
    else:
        logger.error("Unhandled error for %s", user_id, exc_info=error)

    analytics = context.bot_data.get("analytics")
    if analytics is not None and error is not None:
        analytics.track_error(error, user_id, {"source": "update_handler"})

    if chat_id is not None:
        await context.bot.send_message(chat_id=chat_id, text=GENERIC_FAILURE_TEXT)


def register_error_handler(app):
    app.add_error_handler(error_handler)
