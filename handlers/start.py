# handlers/start.py — /start и экран подписки

import asyncio
import logging

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import CallbackQueryHandler, CommandHandler, ContextTypes

from utils.constants import CB_BACK_MENU, CB_SHOW_MENU
from utils.keyboards import main_kb, offers_kb

logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "👋 Hi, {name}!\n\n"
    "I'm your personal Spanish practice assistant! 🎯\n\n"
    "🎤 *How it works:*\n"
    "1. Send me a voice message in Spanish\n"
    "2. I'll analyze your speech\n"
    "3. Get feedback and an audio response\n\n"
    "🌟 *You need a subscription to access features:*"
)

ENTITLED_TEXT = (
    "👋 Hi, {name}!\n\n"
    "✅ Your subscription is active.\n"
    "Send voice messages for analysis! 🎤"
)

MENU_ACTIVE_TEXT = (
    "🎯 *Spanish Practice Bot*\n\n"
    "👋 Hi, {name}!\n\n"
    "✅ *Your subscription is active*\n"
    "Type: {kind}\n"
    "Valid until: {until}\n\n"
    "🎤 *Send a voice message* to practice Spanish!"
)

MENU_OFFERS_TEXT = (
    "🎯 *Spanish Practice Bot*\n\n"
    "👋 Hi, {name}!\n\n"
    "I'll help you practice Spanish!\n\n"
    "🎤 *How it works:*\n"
    "1. Send me a voice message in Spanish\n"
    "2. I'll analyze your speech with AI\n"
    "3. Get detailed feedback and an audio response\n\n"
    "🌟 *Choose a plan:*"
)


def _name(first_name) -> str:
    return first_name or "friend"


async def start_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    tg_user = update.effective_user
    entitlements = context.bot_data["entitlements"]

    await asyncio.to_thread(
        entitlements.get_or_create_user,
        tg_user.id, tg_user.username, tg_user.first_name, tg_user.last_name,
    )
    context.bot_data["analytics"].track_command(
        "/start", tg_user.id, update.effective_chat.type, tg_user.username, tg_user.language_code
    )

    if await asyncio.to_thread(entitlements.is_entitled, tg_user.id):
        await update.message.reply_text(
            ENTITLED_TEXT.format(name=_name(tg_user.first_name)), reply_markup=main_kb()
        )
    else:
        await update.message.reply_text(
            WELCOME_TEXT.format(name=_name(tg_user.first_name)),
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=offers_kb(),
        )


async def send_menu(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Главное меню: срок подписки либо три предложения."""
    tg_user = update.effective_user
    entitlements = context.bot_data["entitlements"]
    user = await asyncio.to_thread(
        entitlements.get_or_create_user,
        tg_user.id, tg_user.username, tg_user.first_name, tg_user.last_name,
    )
    name = _name(user.first_name)

    grant = await asyncio.to_thread(entitlements.get_active_grant, tg_user.id)
    if grant is not None:
        text = MENU_ACTIVE_TEXT.format(
            name=name,
            kind=grant.kind.display_name,
            until=grant.expires_at.strftime("%Y-%m-%d %H:%M"),
        )
        markup = main_kb()
    else:
        text = MENU_OFFERS_TEXT.format(name=name)
        markup = offers_kb()

    await context.bot.send_message(
        chat_id=update.effective_chat.id,
        text=text,
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=markup,
    )


async def menu_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    context.bot_data["analytics"].track_callback(query.data, update.effective_user.id)
    await send_menu(update, context)


def register_start_handlers(app):
    app.add_handler(CommandHandler("start", start_handler))
    app.add_handler(CommandHandler("menu", send_menu))
    app.add_handler(CallbackQueryHandler(
        menu_callback, pattern=rf"^({CB_SHOW_MENU}|{CB_BACK_MENU})$"
    ))
