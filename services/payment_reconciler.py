# services/payment_reconciler.py — подтверждённая оплата → активация доступа

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from analytics import Analytics
from payment_client import CURRENCY, Product, product_for_payload
from services.entitlement_service import ActivationOutcome, EntitlementService

logger = logging.getLogger(__name__)

PAYLOAD_PREFIX = "sub_"


@dataclass(frozen=True)
class PaymentResult:
    recognized: bool
    product: Optional[Product] = None
    outcome: Optional[ActivationOutcome] = None


def check_pre_checkout(payload: str) -> Tuple[bool, Optional[str]]:
    """Ответ на pre_checkout_query: пропускаем только счета подписки."""
    if (payload or "").startswith(PAYLOAD_PREFIX):
        return True, None
    return False, "Payment error"


class PaymentReconciler:
    """
    Повторная доставка одного и того же платежа снова активирует доступ:
    "погасить все и вставить" идемпотентно по состоянию, только сдвигает срок.
    """

    def __init__(self, entitlements: EntitlementService, analytics: Optional[Analytics] = None):
        self.entitlements = entitlements
        self.analytics = analytics or Analytics()

    def on_payment_confirmed(self, user_id: int, payload: str, amount: int,
                             charge_ref: Optional[str], currency: str = CURRENCY) -> PaymentResult:
        logger.info("Payment for %s: charge=%s payload=%s amount=%s", user_id, charge_ref, payload, amount)

        product = product_for_payload(payload)
        if product is None:
            logger.warning("Unrecognized payment payload %r from user %s", payload, user_id)
            return PaymentResult(recognized=False)

        outcome = self.entitlements.activate_by_payment(user_id, product.code, charge_ref)
        try:
            self.analytics.track_payment(user_id, amount, currency, product.kind.name, charge_ref)
        except Exception:
            logger.exception("Failed to emit payment_completed for %s", user_id)
        return PaymentResult(recognized=True, product=product, outcome=outcome)
