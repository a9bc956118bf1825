# handlers/messages.py — промокод, голос и кнопки постоянной клавиатуры

import asyncio
import logging

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import ContextTypes, MessageHandler, filters

from handlers.start import send_menu
from services.entitlement_service import ActivationStatus
from services.voice_pipeline import VoiceInput
from utils.constants import BTN_HELP, BTN_MAIN_MENU, BTN_RETRY
from utils.keyboards import main_kb

logger = logging.getLogger(__name__)


# 1) Текст: промокод (если ждём его) или кнопки меню
async def text_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user_id = update.effective_user.id
    text = update.message.text or ""

    if context.bot_data["promo_waiting"].pop(user_id):
        return await handle_promo_code(update, context, text)

    if text == BTN_MAIN_MENU:
        return await send_menu(update, context)
    if text == BTN_HELP:
        return await help_handler(update, context)
    if text == BTN_RETRY:
        return await retry_handler(update, context)

    # всё прочее молча игнорируем
    logger.info("Ignoring unexpected text from %s", user_id)


async def handle_promo_code(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str):
    tg_user = update.effective_user
    entitlements = context.bot_data["entitlements"]
    logger.info("Processing promo code for %s", tg_user.id)

    # запросы к БД уходят в поток, цикл бота не блокируется
    await asyncio.to_thread(
        entitlements.get_or_create_user,
        tg_user.id, tg_user.username, tg_user.first_name, tg_user.last_name,
    )
    outcome = await asyncio.to_thread(entitlements.activate_by_promo, tg_user.id, text)

    if outcome.status is ActivationStatus.INVALID_CODE:
        return await update.message.reply_text("❌ Invalid or inactive promo code.")
    if outcome.status is ActivationStatus.ALREADY_USED:
        return await update.message.reply_text("❌ You have already used this promo code.")

    await update.message.reply_text(
        "✅ *Promo code activated!*\n\n"
        f"Your subscription is valid for {outcome.duration_days} days.\n"
        "You can now send voice messages for analysis! 🎤",
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=main_kb(),
    )


async def help_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    contact = context.bot_data["settings"].support_contact
    await update.message.reply_text(
        "Need Help?\n\n"
        f"You can write about your problem here: {contact}\n\n"
        "Our support team will assist you!",
        reply_markup=main_kb(),
    )


# 2) Повтор последнего неудачного голосового
async def retry_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await context.bot_data["pipeline"].process(update.effective_user.id)


# 3) Новое голосовое
async def voice_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user_id = update.effective_user.id
    voice = update.message.voice
    if not voice:
        return
    context.bot_data["analytics"].track_message(user_id, "voice")
    await context.bot_data["pipeline"].process(user_id, VoiceInput(file_id=voice.file_id))


def register_message_handlers(app):
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, text_handler))
    app.add_handler(MessageHandler(filters.VOICE, voice_handler))
