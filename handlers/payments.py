# handlers/payments.py — pre-checkout и успешная оплата

import asyncio
import logging

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import ContextTypes, MessageHandler, PreCheckoutQueryHandler, filters

from services.payment_reconciler import check_pre_checkout
from utils.keyboards import main_kb

logger = logging.getLogger(__name__)


async def pre_checkout_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.pre_checkout_query
    ok, error = check_pre_checkout(query.invoice_payload)
    if not ok:
        logger.info("Rejecting pre-checkout %s with payload %r", query.id, query.invoice_payload)
    await query.answer(ok=ok, error_message=error)


async def successful_payment_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    payment = update.message.successful_payment
    tg_user = update.effective_user

    await asyncio.to_thread(
        context.bot_data["entitlements"].get_or_create_user,
        tg_user.id, tg_user.username, tg_user.first_name, tg_user.last_name,
    )
    result = await asyncio.to_thread(
        context.bot_data["reconciler"].on_payment_confirmed,
        tg_user.id,
        payment.invoice_payload,
        payment.total_amount,
        payment.telegram_payment_charge_id,
        payment.currency,
    )

    if result.recognized and result.outcome is not None and result.outcome.ok:
        await update.message.reply_text(
            "✅ *Payment successful!*\n\n"
            "Your subscription is activated.\n"
            f"Type: {result.outcome.kind.display_name}\n\n"
            "You can now send voice messages for analysis! 🎤",
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=main_kb(),
        )
    else:
        await update.message.reply_text("✅ Payment successful!")


def register_payment_handlers(app):
    app.add_handler(PreCheckoutQueryHandler(pre_checkout_handler))
    app.add_handler(MessageHandler(filters.SUCCESSFUL_PAYMENT, successful_payment_handler))
