# analytics.py — события в Mixpanel (отправка в фоне, ошибки только в лог)

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, Optional, Set

import httpx

logger = logging.getLogger(__name__)

MIXPANEL_TRACK_URL = "https://api.mixpanel.com/track"


class Analytics:
    """Приёмник событий по умолчанию: ничего не отправляет."""

    def track(self, event: str, distinct_id: Any, properties: Optional[Dict[str, Any]] = None) -> None:
        logger.debug("analytics disabled, dropping %s for %s", event, distinct_id)

    # ---- типовые события ----

    def track_command(self, command: str, user_id: int, chat_type: Optional[str] = None,
                      username: Optional[str] = None, country_code: Optional[str] = None) -> None:
        self.track("command_used", user_id, {
            "command": command,
            "chat_id": user_id,
            "chat_type": chat_type or "unknown",
            "username": username or "anonymous",
            "country_code": country_code or "unknown",
        })

    def track_callback(self, data: str, user_id: int, chat_type: Optional[str] = None) -> None:
        self.track("callback_pressed", user_id, {
            "callback_data": data,
            "chat_id": user_id,
            "chat_type": chat_type or "private",
        })

    def track_message(self, user_id: int, message_type: str) -> None:
        self.track("message_received", user_id, {
            "chat_id": user_id,
            "chat_type": "private",
            "message_type": message_type,
        })

    def track_payment(self, user_id: int, amount: int, currency: str, kind: str,
                      charge_id: Optional[str] = None) -> None:
        self.track("payment_completed", user_id, {
            "amount": amount,
            "currency": currency,
            "subscription_type": kind,
            "charge_id": charge_id or "unknown",
        })
        self.track("$revenue", user_id, {"$amount": amount, "subscription_type": kind})

    def track_subscription_activated(self, user_id: int, kind: str, duration_days: int, method: str) -> None:
        self.track("subscription_activated", user_id, {
            "subscription_type": kind,
            "duration_days": duration_days,
            "activation_method": method,
        })

    def track_promo_code(self, user_id: int, code: str, success: bool, duration_days: int = 0) -> None:
        self.track("promo_code_success" if success else "promo_code_failed", user_id, {
            "promo_code": code,
            "duration_days": duration_days,
            "success": success,
        })

    def track_error(self, error: BaseException, user_id: Optional[int] = None,
                    context: Optional[Dict[str, Any]] = None) -> None:
        props = {
            "error_type": type(error).__name__,
            "error_message": str(error) or "Unknown error",
            "chat_id": user_id if user_id is not None else "unknown",
            "timestamp": int(time.time() * 1000),
        }
        props.update(context or {})
        self.track("error_occurred", user_id if user_id is not None else "unknown", props)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        return None

    async def aclose(self) -> None:
        return None


class MixpanelAnalytics(Analytics):
    def __init__(self, token: str, client: Optional[httpx.AsyncClient] = None,
                 url: str = MIXPANEL_TRACK_URL):
        self.token = token
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=10.0)
        # ссылки на фоновые задачи, иначе их соберёт GC
        self._pending: Set[asyncio.Task] = set()
        # цикл бота: события из рабочих потоков (to_thread) передаются в него
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def _build_event(self, event: str, distinct_id: Any, properties: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        props: Dict[str, Any] = {
            "token": self.token,
            "distinct_id": str(distinct_id),
            "$user_id": str(distinct_id),
            "time": int(time.time() * 1000),
            "$insert_id": uuid.uuid4().hex,
        }
        props.update(properties or {})
        return {"event": event, "properties": props}

    def track(self, event: str, distinct_id: Any, properties: Optional[Dict[str, Any]] = None) -> None:
        payload = self._build_event(event, distinct_id, properties)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            loop = self._loop
            if loop is None or loop.is_closed():
                logger.warning("No running event loop, analytics event %s dropped", event)
                return
            loop.call_soon_threadsafe(self._schedule, payload)
            return
        self._schedule(payload)

    def _schedule(self, payload: Dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, payload: Dict[str, Any]) -> None:
        try:
            response = await self.client.post(
                self.url, json=[payload], headers={"Accept": "text/plain"}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Mixpanel track error for %s: %s", payload["event"], e)

    async def flush(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.flush()
        await self.client.aclose()


def create_analytics(token: Optional[str]) -> Analytics:
    if not token:
        logger.info("MIXPANEL_TOKEN is not set, analytics disabled")
        return Analytics()
    logger.info("Mixpanel analytics initialized")
    return MixpanelAnalytics(token)
