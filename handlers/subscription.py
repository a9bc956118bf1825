# handlers/subscription.py — кнопки «Месяц», «Год», «Промокод»

import logging

from telegram import Update
from telegram.ext import CallbackQueryHandler, ContextTypes

from payment_client import get_product, send_subscription_invoice
from utils.constants import CB_PROMO, CB_SUB_MONTHLY, CB_SUB_YEARLY

logger = logging.getLogger(__name__)


async def subscription_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    tg_user = update.effective_user
    context.bot_data["analytics"].track_callback(query.data, tg_user.id)

    product = get_product(query.data)
    if product is None:
        logger.info("Ignoring unknown subscription callback %r", query.data)
        return
    await send_subscription_invoice(
        context.bot, update.effective_chat.id, product, tg_user.username
    )


async def promo_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    tg_user = update.effective_user
    context.bot_data["analytics"].track_callback(query.data, tg_user.id)

    # следующее текстовое сообщение пользователя будет воспринято как промокод
    context.bot_data["promo_waiting"].add(tg_user.id)
    await context.bot.send_message(
        chat_id=update.effective_chat.id,
        text="💎 Enter your promo code in the message:",
    )


def register_subscription_handlers(app):
    app.add_handler(CallbackQueryHandler(
        subscription_callback, pattern=rf"^({CB_SUB_MONTHLY}|{CB_SUB_YEARLY})$"
    ))
    app.add_handler(CallbackQueryHandler(promo_callback, pattern=rf"^{CB_PROMO}$"))
