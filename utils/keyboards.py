# utils/keyboards.py

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)

from utils.constants import (
    BTN_HELP,
    BTN_MAIN_MENU,
    BTN_RETRY,
    CB_PROMO,
    CB_SUB_MONTHLY,
    CB_SUB_YEARLY,
    OFFER_MONTHLY,
    OFFER_PROMO,
    OFFER_YEARLY,
)


def offers_kb() -> InlineKeyboardMarkup:
    """Три предложения для пользователя без доступа."""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(OFFER_YEARLY,  callback_data=CB_SUB_YEARLY)],
        [InlineKeyboardButton(OFFER_MONTHLY, callback_data=CB_SUB_MONTHLY)],
        [InlineKeyboardButton(OFFER_PROMO,   callback_data=CB_PROMO)],
    ])


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [[KeyboardButton(BTN_MAIN_MENU), KeyboardButton(BTN_HELP)]],
        resize_keyboard=True,
        one_time_keyboard=False,
    )


def retry_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [
            [KeyboardButton(BTN_RETRY)],
            [KeyboardButton(BTN_MAIN_MENU), KeyboardButton(BTN_HELP)],
        ],
        resize_keyboard=True,
        one_time_keyboard=False,
    )
