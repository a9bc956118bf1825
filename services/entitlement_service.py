# services/entitlement_service.py — пользователи, оплата и промокоды → доступ

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from analytics import Analytics
from grant_repo import GrantRepository
from models import Grant, GrantKind, User
from payment_client import get_product
from promo_repo import PromoRepository, normalize_code
from user_repo import UserRepository

logger = logging.getLogger(__name__)


class ActivationStatus(enum.Enum):
    SUCCESS = "success"
    UNKNOWN_PRODUCT = "unknown_product"
    INVALID_CODE = "invalid_code"
    ALREADY_USED = "already_used"


@dataclass(frozen=True)
class ActivationOutcome:
    status: ActivationStatus
    kind: Optional[GrantKind] = None
    duration_days: Optional[int] = None
    expires_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.status is ActivationStatus.SUCCESS


class EntitlementService:
    """
    Единственное место, которое меняет grants и promo_redemptions.
    Ошибки хранилища (StoreUnavailable) пробрасываются дальше как есть.
    """

    def __init__(
        self,
        users: UserRepository,
        grants: GrantRepository,
        promos: PromoRepository,
        analytics: Optional[Analytics] = None,
    ):
        self.users = users
        self.grants = grants
        self.promos = promos
        self.analytics = analytics or Analytics()

    def get_or_create_user(self, user_id: int, username: Optional[str] = None,
                           first_name: Optional[str] = None, last_name: Optional[str] = None) -> User:
        return self.users.get_or_create(user_id, username, first_name, last_name)

    def is_entitled(self, user_id: int) -> bool:
        """Может погасить истёкшую запись (см. GrantRepository.get_active)."""
        return self.grants.is_entitled(user_id)

    def get_active_grant(self, user_id: int) -> Optional[Grant]:
        return self.grants.get_active(user_id)

    def activate_by_payment(self, user_id: int, product_code: str,
                            payment_ref: Optional[str] = None) -> ActivationOutcome:
        product = get_product(product_code)
        if product is None:
            logger.info("Unknown product %r for user %s, nothing activated", product_code, user_id)
            return ActivationOutcome(ActivationStatus.UNKNOWN_PRODUCT)

        grant = self.grants.activate(user_id, product.kind, product.duration_days, payment_ref)
        self._emit_activated(user_id, product.kind, product.duration_days, "payment")
        return ActivationOutcome(
            ActivationStatus.SUCCESS,
            kind=product.kind,
            duration_days=product.duration_days,
            expires_at=grant.expires_at,
        )

    def activate_by_promo(self, user_id: int, code: str) -> ActivationOutcome:
        code = normalize_code(code)

        promo = self.promos.validate(code)
        if promo is None:
            logger.info("User %s sent invalid promo code %r", user_id, code)
            self._emit_promo(user_id, code, False)
            return ActivationOutcome(ActivationStatus.INVALID_CODE)

        if self.promos.has_redeemed(user_id, code):
            logger.info("User %s already redeemed %s", user_id, code)
            self._emit_promo(user_id, code, False)
            return ActivationOutcome(ActivationStatus.ALREADY_USED)

        # погашение записывается ДО активации: при падении между шагами
        # код останется использованным, а доступ нет
        if not self.promos.redeem(user_id, code):
            self._emit_promo(user_id, code, False)
            return ActivationOutcome(ActivationStatus.INVALID_CODE)

        grant = self.grants.activate(user_id, GrantKind.PROMO, promo.duration_days)
        self._emit_promo(user_id, code, True, promo.duration_days)
        self._emit_activated(user_id, GrantKind.PROMO, promo.duration_days, "promo_code")
        return ActivationOutcome(
            ActivationStatus.SUCCESS,
            kind=GrantKind.PROMO,
            duration_days=promo.duration_days,
            expires_at=grant.expires_at,
        )

    # ---- аналитика: никогда не ломает активацию ----

    def _emit_activated(self, user_id: int, kind: GrantKind, days: int, method: str) -> None:
        try:
            self.analytics.track_subscription_activated(user_id, kind.name, days, method)
        except Exception:
            logger.exception("Failed to emit subscription_activated for %s", user_id)

    def _emit_promo(self, user_id: int, code: str, success: bool, days: int = 0) -> None:
        try:
            self.analytics.track_promo_code(user_id, code, success, days)
        except Exception:
            logger.exception("Failed to emit promo event for %s", user_id)
