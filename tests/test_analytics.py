"""Отправка событий в Mixpanel: в фоне, ошибки не пробрасываются."""

import asyncio
import json

import httpx

from analytics import Analytics, MixpanelAnalytics, create_analytics


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_event_is_posted_with_token_and_properties():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, text="1")

    mp = MixpanelAnalytics("tok", client=_client(handler))
    mp.track_promo_code(7, "FREE30", True, 30)
    await mp.aclose()

    assert len(seen) == 1
    event = seen[0][0]
    assert event["event"] == "promo_code_success"
    props = event["properties"]
    assert props["token"] == "tok"
    assert props["distinct_id"] == "7"
    assert props["promo_code"] == "FREE30"
    assert props["duration_days"] == 30


async def test_payment_also_tracks_revenue():
    names = []

    def handler(request):
        names.append(json.loads(request.content)[0]["event"])
        return httpx.Response(200, text="1")

    mp = MixpanelAnalytics("tok", client=_client(handler))
    mp.track_payment(1, 499, "XTR", "MONTHLY", "ch")
    await mp.flush()

    assert sorted(names) == ["$revenue", "payment_completed"]


async def test_delivery_failures_are_swallowed():
    def handler(request):
        return httpx.Response(500, text="boom")

    mp = MixpanelAnalytics("tok", client=_client(handler))
    mp.track_error(RuntimeError("x"), 1, {"feature": "voice_processing"})
    await mp.flush()


def test_track_without_event_loop_is_dropped():
    mp = MixpanelAnalytics("tok", client=httpx.AsyncClient())
    mp.track("command_used", 1, {"command": "/start"})
    assert not mp._pending


def test_create_analytics_without_token_is_noop():
    sink = create_analytics(None)
    assert type(sink) is Analytics
    sink.track_command("/start", 1)
    assert isinstance(create_analytics("tok"), MixpanelAnalytics)


async def test_track_from_worker_thread_reaches_bound_loop():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content)[0]["event"])
        return httpx.Response(200, text="1")

    mp = MixpanelAnalytics("tok", client=_client(handler))
    mp.bind_loop(asyncio.get_running_loop())

    await asyncio.to_thread(mp.track_subscription_activated, 3, "PROMO", 30, "promo_code")
    await asyncio.sleep(0)
    await mp.aclose()

    assert seen == ["subscription_activated"]
