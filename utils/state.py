# utils/state.py — кто сейчас должен прислать промокод

import threading
from typing import Set


class PromoWaiting:
    """
    Набор user_id, которым только что показали «введите промокод».
    Следующее текстовое сообщение такого пользователя — это код (флаг снимается).
    """

    def __init__(self):
        self._users: Set[int] = set()
        self._lock = threading.Lock()

    def add(self, user_id: int) -> None:
        with self._lock:
            self._users.add(user_id)

    def discard(self, user_id: int) -> None:
        with self._lock:
            self._users.discard(user_id)

    def pop(self, user_id: int) -> bool:
        """Снимает флаг и сообщает, стоял ли он."""
        with self._lock:
            if user_id in self._users:
                self._users.remove(user_id)
                return True
            return False

    def __contains__(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._users
