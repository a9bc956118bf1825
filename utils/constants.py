# utils/constants.py

# Кнопки подписки (callback_data)
CB_SUB_MONTHLY = "sub_monthly"
CB_SUB_YEARLY  = "sub_yearly"
CB_PROMO       = "promo"
CB_SHOW_MENU   = "show_menu"
CB_BACK_MENU   = "back_to_menu"

# Кнопки постоянной клавиатуры (текст сообщения)
BTN_MAIN_MENU = "🏠 Main Menu"
BTN_HELP      = "❓ Help"
BTN_RETRY     = "🔄 Retry"

# Подписи кнопок с предложениями
OFFER_YEARLY  = "🌟 Yearly — 2499 Stars (Save 60%)"
OFFER_MONTHLY = "🌟 Monthly — 499 Stars"
OFFER_PROMO   = "💎 Enter Promo Code"
