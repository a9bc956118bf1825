# user_repo.py

# ==============================
# Stage 2: User Repository
# ==============================

# Stage 2.1: импорт фабрики сессий и модели User
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from errors import StoreUnavailable
from models import User

logger = logging.getLogger(__name__)


# Stage 2.2: класс-репозиторий для операций над User
class UserRepository:
    # Stage 2.2.1: инициализация с привязкой к SQLAlchemy engine
    def __init__(self, engine, clock: Callable[[], datetime] = datetime.now):
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
        self.clock = clock

    # Stage 2.3: получить пользователя по ID
    def get(self, user_id: int) -> Optional[User]:
        session = self.Session()
        try:
            return session.get(User, user_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"user lookup failed: {e}") from e
        finally:
            session.close()

    # Stage 2.4: получить или создать; атрибуты обновляются, id — никогда
    def get_or_create(
        self,
        user_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        session = self.Session()
        try:
            user = session.get(User, user_id)
            if user is None:
                # Stage 2.4.1: новый пользователь
                user = User(
                    id=user_id,
                    username=username,
                    first_name=first_name,
                    last_name=last_name,
                    created_at=self.clock(),
                )
                session.add(user)
                logger.info("Created user %s (@%s)", user_id, username)
            else:
                # Stage 2.4.2: обновляем только то, что пришло непустым
                if username:
                    user.username = username
                if first_name:
                    user.first_name = first_name
                if last_name:
                    user.last_name = last_name
            session.commit()
            return user
        except IntegrityError:
            # Stage 2.4.3: параллельный /start уже создал строку, просто перечитываем
            session.rollback()
            user = session.get(User, user_id)
            if user is None:
                raise StoreUnavailable(f"user {user_id} vanished after concurrent insert")
            return user
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreUnavailable(f"user upsert failed: {e}") from e
        finally:
            session.close()
