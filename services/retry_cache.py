# services/retry_cache.py — последний необработанный голос на пользователя (только в памяти)

import threading
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class RetryCache(Generic[T]):
    """
    user_id → последний payload, который не прошёл обработку.
    Без TTL и вытеснения: запись живёт до перезаписи, удаления или рестарта процесса.
    """

    def __init__(self):
        self._items: Dict[int, T] = {}
        self._lock = threading.Lock()

    def put(self, user_id: int, payload: T) -> None:
        with self._lock:
            self._items[user_id] = payload

    def get(self, user_id: int) -> Optional[T]:
        with self._lock:
            return self._items.get(user_id)

    def remove(self, user_id: int) -> Optional[T]:
        with self._lock:
            return self._items.pop(user_id, None)

    def __contains__(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
