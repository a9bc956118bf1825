# models.py

# ==============================
# Stage 1: Data Model
# ==============================

# Stage 1.1: импорт декларативной базы и типов столбцов
import enum
import logging
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Stage 1.2: базовый класс для всех моделей
Base = declarative_base()


# Stage 1.3: вид доступа — оплата на месяц, на год или промокод
class GrantKind(enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    PROMO = "promo"

    @property
    def display_name(self) -> str:
        return {
            GrantKind.MONTHLY: "Monthly",
            GrantKind.YEARLY: "Yearly",
            GrantKind.PROMO: "Promo Code",
        }[self]


# Stage 1.4: таблица users
class User(Base):
    __tablename__ = "users"

    # Stage 1.4.1: Telegram user_id — первичный ключ, не меняется
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    # Stage 1.4.2: отображаемые атрибуты, могут обновляться
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    # Stage 1.4.3: дата и время создания записи
    created_at = Column(DateTime, nullable=False, default=datetime.now)


# Stage 1.5: таблица grants — единственный источник правды о доступе
class Grant(Base):
    __tablename__ = "grants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    kind = Column(Enum(GrantKind, native_enum=False, length=50), nullable=False)
    start_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    # Stage 1.5.1: только active → inactive, обратно никогда
    is_active = Column(Boolean, nullable=False, default=True)
    payment_ref = Column(String(255), nullable=True)

    def __repr__(self) -> str:
        return (
            f"Grant(user_id={self.user_id}, kind={self.kind}, "
            f"expires_at={self.expires_at}, is_active={self.is_active})"
        )


# Stage 1.6: таблица promo_codes
class PromoCode(Base):
    __tablename__ = "promo_codes"

    # Stage 1.6.1: код хранится в верхнем регистре
    code = Column(String(100), primary_key=True)
    duration_days = Column(Integer, nullable=False)
    max_uses = Column(Integer, nullable=False)
    current_uses = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


# Stage 1.7: таблица promo_redemptions — не более одной строки на (user, code)
class PromoRedemption(Base):
    __tablename__ = "promo_redemptions"

    user_id = Column(BigInteger, ForeignKey("users.id"), primary_key=True)
    promo_code = Column(String(100), ForeignKey("promo_codes.code"), primary_key=True)
    used_at = Column(DateTime, nullable=False, default=datetime.now)


# Stage 1.8: промокоды, которые создаются при первом запуске
DEFAULT_PROMO_CODES = (
    ("FREE30", 30),
    ("WELCOME7", 7),
    ("TRIAL3", 3),
)
DEFAULT_PROMO_MAX_USES = 1000


def init_db(engine, seed_promo_codes: bool = True) -> None:
    """
    Создаёт недостающие таблицы и (по умолчанию) добавляет стандартные промокоды,
    если их ещё нет. Существующие коды не трогаем.
    """
    Base.metadata.create_all(engine)
    if not seed_promo_codes:
        return

    session = sessionmaker(bind=engine)()
    try:
        for code, days in DEFAULT_PROMO_CODES:
            if session.get(PromoCode, code) is None:
                session.add(PromoCode(
                    code=code,
                    duration_days=days,
                    max_uses=DEFAULT_PROMO_MAX_USES,
                    current_uses=0,
                    is_active=True,
                ))
                logger.info("Seeded promo code %s (%s days)", code, days)
        session.commit()
    finally:
        session.close()
