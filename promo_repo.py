# promo_repo.py

# ==============================
# Stage 4: Promo Repository (промокоды и их погашения)
# ==============================

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from errors import StoreUnavailable
from models import PromoCode, PromoRedemption

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class PromoRepository:
    def __init__(self, engine, clock: Callable[[], datetime] = datetime.now):
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
        self.clock = clock

    # Stage 4.1: код пригоден, только если активен и есть остаток использований
    def validate(self, code: str) -> Optional[PromoCode]:
        code = normalize_code(code)
        if not code:
            return None
        session = self.Session()
        try:
            promo = session.execute(
                select(PromoCode).where(
                    PromoCode.code == code,
                    PromoCode.is_active.is_(True),
                    PromoCode.current_uses < PromoCode.max_uses,
                )
            ).scalars().first()
            logger.debug("Promo code %s validation result: %s", code, promo is not None)
            return promo
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"promo lookup failed: {e}") from e
        finally:
            session.close()

    # Stage 4.2: использовал ли пользователь этот код
    def has_redeemed(self, user_id: int, code: str) -> bool:
        session = self.Session()
        try:
            row = session.get(PromoRedemption, (user_id, normalize_code(code)))
            return row is not None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"redemption lookup failed: {e}") from e
        finally:
            session.close()

    def redeem(self, user_id: int, code: str) -> bool:
        """
        Счётчик +1 и строка погашения — одной транзакцией.

        Повторная строка погашения не вставляется, но счётчик увеличивается при
        каждом вызове: вызывающий обязан сначала проверить has_redeemed().
        Возвращает False, если код выключен или лимит исчерпан (тогда ничего не меняется).
        """
        code = normalize_code(code)
        session = self.Session()
        try:
            # Stage 4.3.1: увеличиваем счётчик только у активного кода и не выходя за max_uses
            result = session.execute(
                update(PromoCode)
                .where(
                    PromoCode.code == code,
                    PromoCode.is_active.is_(True),
                    PromoCode.current_uses < PromoCode.max_uses,
                )
                .values(current_uses=PromoCode.current_uses + 1)
            )
            if result.rowcount != 1:
                session.rollback()
                logger.info("Promo code %s is inactive or has no uses left for user %s", code, user_id)
                return False

            # Stage 4.3.2: фиксируем погашение, если его ещё нет
            if session.get(PromoRedemption, (user_id, code)) is None:
                session.add(PromoRedemption(user_id=user_id, promo_code=code, used_at=self.clock()))
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailable(f"promo redemption failed: {e}") from e
        finally:
            session.close()
