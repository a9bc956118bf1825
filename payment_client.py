# payment_client.py — каталог подписок и выставление счетов в Telegram Stars

import logging
from dataclasses import dataclass
from typing import Optional

from telegram import Bot, LabeledPrice

from models import GrantKind

logger = logging.getLogger(__name__)

CURRENCY = "XTR"


@dataclass(frozen=True)
class Product:
    code: str
    kind: GrantKind
    duration_days: int
    price: int
    title: str
    description: str
    label: str


PRODUCTS = {
    "sub_monthly": Product(
        code="sub_monthly",
        kind=GrantKind.MONTHLY,
        duration_days=30,
        price=499,
        title="🌟 Premium Monthly Subscription",
        description="Get access to premium features for 30 days",
        label="Monthly",
    ),
    "sub_yearly": Product(
        code="sub_yearly",
        kind=GrantKind.YEARLY,
        duration_days=365,
        price=2499,
        title="🌟 Premium Yearly Subscription",
        description="(Save 58%) Get access to premium features for 1 year",
        label="Yearly",
    ),
}


def get_product(code: str) -> Optional[Product]:
    return PRODUCTS.get(code)


def product_for_payload(payload: str) -> Optional[Product]:
    """Payload счёта имеет вид "<product>_<username>", ищем продукт по префиксу."""
    for code, product in PRODUCTS.items():
        if (payload or "").startswith(code):
            return product
    return None


def build_payload(product: Product, username: Optional[str]) -> str:
    return f"{product.code}_{username}"


async def send_subscription_invoice(bot: Bot, chat_id: int, product: Product, username: Optional[str]):
    logger.info("Sending %s invoice to %s", product.code, chat_id)
    return await bot.send_invoice(
        chat_id=chat_id,
        title=product.title,
        description=product.description,
        payload=build_payload(product, username),
        currency=CURRENCY,
        prices=[LabeledPrice(product.label, product.price)],
    )
