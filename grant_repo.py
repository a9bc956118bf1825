# grant_repo.py

# ==============================
# Stage 3: Grant Repository (хранилище доступа)
# ==============================

import logging
from datetime import datetime, time, timedelta
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from errors import StoreUnavailable
from models import Grant, GrantKind, User

logger = logging.getLogger(__name__)


def expiry_for(now: datetime, duration_days: int) -> datetime:
    """Срок действия — начало суток (now.date() + N дней), а не now + N×24ч."""
    return datetime.combine(now.date() + timedelta(days=duration_days), time.min)


class GrantRepository:
    """
    Таблица grants. У пользователя в любой момент не больше одной строки с is_active=True.

    Внимание: get_active / is_entitled — чтение С ПОБОЧНЫМ ЭФФЕКТОМ. Если активная
    запись уже истекла, она переводится в is_active=False прямо во время чтения.
    """

    def __init__(self, engine, clock: Callable[[], datetime] = datetime.now):
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
        self.clock = clock

    # Stage 3.1: текущая активная запись (или None) + ленивое истечение
    def get_active(self, user_id: int) -> Optional[Grant]:
        session = self.Session()
        try:
            grant = session.execute(
                select(Grant)
                .where(Grant.user_id == user_id, Grant.is_active.is_(True))
                .order_by(Grant.id.desc())
            ).scalars().first()
            if grant is None:
                return None

            now = self.clock()
            if now < grant.expires_at:
                return grant

            # Stage 3.1.1: срок вышел, гасим запись
            session.execute(
                update(Grant)
                .where(Grant.id == grant.id, Grant.is_active.is_(True))
                .values(is_active=False)
            )
            session.commit()
            logger.info("Grant %s of user %s expired at %s", grant.id, user_id, grant.expires_at)
            return None
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailable(f"grant lookup failed: {e}") from e
        finally:
            session.close()

    def is_entitled(self, user_id: int) -> bool:
        return self.get_active(user_id) is not None

    # Stage 3.2: активация — погасить все старые записи и вставить новую в ОДНОЙ транзакции
    def activate(
        self,
        user_id: int,
        kind: GrantKind,
        duration_days: int,
        payment_ref: Optional[str] = None,
    ) -> Grant:
        now = self.clock()
        session = self.Session()
        try:
            # Stage 3.2.1: блокируем строку пользователя, параллельные активации встают в очередь
            session.execute(
                select(User.id).where(User.id == user_id).with_for_update()
            ).scalar_one_or_none()
            # Stage 3.2.2: active → inactive для всех прежних записей
            session.execute(
                update(Grant)
                .where(Grant.user_id == user_id, Grant.is_active.is_(True))
                .values(is_active=False)
            )
            # Stage 3.2.3: новая активная запись
            grant = Grant(
                user_id=user_id,
                kind=kind,
                start_at=now,
                expires_at=expiry_for(now, duration_days),
                is_active=True,
                payment_ref=payment_ref,
            )
            session.add(grant)
            session.commit()
            logger.info(
                "Activated %s grant for user %s: %s days, until %s (ref=%s)",
                kind.name, user_id, duration_days, grant.expires_at, payment_ref,
            )
            return grant
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailable(f"grant activation failed: {e}") from e
        finally:
            session.close()
