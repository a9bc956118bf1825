# handlers/fallback.py — ловим все нераспознанные события: только лог, без ответа

import logging

from telegram import Update
from telegram.ext import CallbackQueryHandler, ContextTypes, MessageHandler, filters

logger = logging.getLogger(__name__)


async def unknown(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user = update.effective_user
    logger.info("Unrecognized message from %s ignored", user.id if user else None)


async def unknown_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    logger.info("Unrecognized callback %r from %s ignored", query.data, update.effective_user.id)


def register_fallback_handler(app):
    # регистрируется последней: срабатывает, только если никто выше не подошёл
    app.add_handler(MessageHandler(filters.ALL, unknown))
    app.add_handler(CallbackQueryHandler(unknown_callback))
