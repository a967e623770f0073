# tests/test_notifications.py
"""
Tests for the event bus, the notification handlers and the webhook sink.

Run:
    pytest tests/test_notifications.py -v
"""
import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.utils import format_rate, parse_decimal, parse_int, safe_format
from notification_system import NotificationService, WebhookProvider
from progression_system.errors import NotificationError
from progression_system.events import handlers
from progression_system.events.event_bus import EventBus, eventBus
from progression_system.events.setup import (
    setup_progression_event_handlers, teardown_progression_event_handlers
)


class FakeProvider:
    def __init__(self, error: Exception = None):
        self.sent = []
        self.error = error

    async def send(self, text: str):
        if self.error:
            raise self.error
        self.sent.append(text)


class BlockingProvider:
    """Holds every send until release is set."""

    def __init__(self):
        self.sent = []
        self.release = asyncio.Event()

    async def send(self, text: str):
        await self.release.wait()
        self.sent.append(text)


@pytest.fixture
def provider():
    fake = FakeProvider()
    handlers.set_notification_service(NotificationService(fake))
    yield fake
    handlers.set_notification_service(None)


@pytest_asyncio.fixture
async def webhook_server():
    received = []

    async def hook(request):
        received.append(await request.json())
        return web.json_response({"ok": True})

    async def broken(request):
        return web.Response(status=500, text="boom")

    app = web.Application()
    app.router.add_post("/hook", hook)
    app.router.add_post("/broken", broken)

    server = TestServer(app)
    await server.start_server()
    server.received = received
    yield server
    await server.close()


# =============================================================================
# TEST CLASS: formatting helpers
# =============================================================================

class TestFormatting:

    def test_safe_format_missing_key(self):
        assert safe_format("{name} reached {rank}", name="Ann") == "Ann reached {rank}"

    def test_safe_format_none(self):
        assert safe_format("XP: {xp}", xp=None) == "XP: -"

    def test_safe_format_bad_spec(self):
        assert safe_format("{xp:d}", xp="many") == "{xp:d}"

    @pytest.mark.parametrize("rate, expected", [
        (Decimal("40.00"), "40%"),
        (Decimal("32.50"), "32.5%"),
        (25, "25%"),
        (None, "-"),
    ])
    def test_format_rate(self, rate, expected):
        assert format_rate(rate) == expected

    def test_parsing(self):
        assert parse_int("42") == 42
        assert parse_int("x") is None
        assert parse_decimal("32,5%") == Decimal("32.5")
        assert parse_decimal("nan") is None
        assert parse_decimal("") is None


# =============================================================================
# TEST CLASS: event bus
# =============================================================================

class TestEventBus:

    def test_singleton(self):
        assert EventBus() is eventBus

    @pytest.mark.asyncio
    async def test_subscribe_once(self):
        calls = []

        async def listener(data):
            calls.append(data)

        eventBus.subscribe("custom.event", listener)
        eventBus.subscribe("custom.event", listener)
        await eventBus.emit("custom.event", {"n": 1})

        assert calls == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_failing_listener_isolated(self):
        calls = []

        async def broken(data):
            raise RuntimeError("nope")

        async def healthy(data):
            calls.append(data)

        eventBus.subscribe("custom.event", broken)
        eventBus.subscribe("custom.event", healthy)
        await eventBus.emit("custom.event", {"n": 2})

        assert calls == [{"n": 2}]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        calls = []

        async def listener(data):
            calls.append(data)

        eventBus.subscribe("custom.event", listener)
        eventBus.unsubscribe("custom.event", listener)
        eventBus.unsubscribe("custom.event", listener)
        await eventBus.emit("custom.event", {})

        assert calls == []


# =============================================================================
# TEST CLASS: handlers
# =============================================================================

class TestHandlers:

    @pytest.mark.asyncio
    async def test_rank_achieved_message(self, provider):
        await handlers.handle_rank_achieved({
            "partnerId": 7, "displayName": "Ann", "newRank": "Agent",
            "commissionRate": Decimal("30.00"),
        })
        await handlers.wait_for_pending_notifications()
        assert len(provider.sent) == 1
        assert provider.sent[0].endswith("Ann (#7) reached Agent! Commission is now 30%")

    @pytest.mark.asyncio
    async def test_demotion_message(self, provider):
        await handlers.handle_rank_demoted({
            "partnerId": 7, "oldRank": "Agent", "newRank": "Apprentice",
            "adminId": 1001, "xp": 2100,
        })
        await handlers.wait_for_pending_notifications()
        assert len(provider.sent) == 1
        assert provider.sent[0].endswith("Partner #7 demoted Agent → Apprentice by admin 1001. XP kept at 2100")

    @pytest.mark.asyncio
    async def test_commission_message(self, provider):
        await handlers.handle_commission_changed({
            "partnerId": 3, "oldRate": Decimal("25"), "newRate": Decimal("32.5"),
        })
        await handlers.wait_for_pending_notifications()
        assert len(provider.sent) == 1
        assert provider.sent[0].endswith("Partner 3 commission 25% → 32.5%")

    @pytest.mark.asyncio
    async def test_missing_fields_do_not_raise(self, provider):
        await handlers.handle_xp_granted({"partnerId": 1})
        await handlers.wait_for_pending_notifications()
        assert len(provider.sent) == 1
        assert provider.sent[0].endswith("Partner #1 earned +- XP (-). Total: - XP")

    @pytest.mark.asyncio
    async def test_end_to_end(self, provider, progression, make_partner):
        setup_progression_event_handlers()
        try:
            partnerId = await make_partner("Ann")
            await progression.grantXp(partnerId, 500)
            await handlers.wait_for_pending_notifications()
        finally:
            teardown_progression_event_handlers()

        assert len(provider.sent) == 2
        assert provider.sent[0].endswith(f"Ann (#{partnerId}) earned +500 XP (xp_grant). Total: 500 XP")
        assert provider.sent[1].endswith(f"Ann (#{partnerId}) reached Starter! Commission is now 22%")

    @pytest.mark.asyncio
    async def test_grant_returns_before_delivery(self, progression, make_partner):
        blocking = BlockingProvider()
        handlers.set_notification_service(NotificationService(blocking))
        setup_progression_event_handlers()
        try:
            partnerId = await make_partner("Ann")
            assert await progression.grantXp(partnerId, 100) == 100
            assert blocking.sent == []

            blocking.release.set()
            await handlers.wait_for_pending_notifications()
        finally:
            teardown_progression_event_handlers()
            handlers.set_notification_service(None)

        assert len(blocking.sent) == 1
        assert blocking.sent[0].endswith(f"Ann (#{partnerId}) earned +100 XP (xp_grant). Total: 100 XP")

    @pytest.mark.asyncio
    async def test_teardown_stops_delivery(self, provider, progression, make_partner):
        setup_progression_event_handlers()
        teardown_progression_event_handlers()

        partnerId = await make_partner()
        await progression.grantXp(partnerId, 10)

        assert provider.sent == []


# =============================================================================
# TEST CLASS: notification service and webhook
# =============================================================================

class TestNotificationService:

    @pytest.mark.asyncio
    async def test_disabled_without_provider(self, monkeypatch):
        from config import Config
        monkeypatch.setitem(Config._config, Config.NOTIFICATION_WEBHOOK_URL, None)

        service = NotificationService()

        assert not service.enabled
        assert await service.publish("hello") is False

    @pytest.mark.asyncio
    async def test_delivery_failure_swallowed(self):
        service = NotificationService(FakeProvider(NotificationError("down", kind="webhook_unreachable")))
        assert await service.publish("hello") is False

    @pytest.mark.asyncio
    async def test_unexpected_failure_swallowed(self):
        service = NotificationService(FakeProvider(RuntimeError("bug")))
        assert await service.publish("hello") is False

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_fail_grant(self, progression, make_partner, load_partner):
        handlers.set_notification_service(
            NotificationService(FakeProvider(NotificationError("down", kind="webhook_unreachable")))
        )
        setup_progression_event_handlers()
        try:
            partnerId = await make_partner()
            assert await progression.grantXp(partnerId, 500) == 500
            await handlers.wait_for_pending_notifications()
        finally:
            teardown_progression_event_handlers()
            handlers.set_notification_service(None)

        assert load_partner(partnerId).currentRank == "Starter"


class TestWebhookProvider:

    @pytest.mark.asyncio
    async def test_posts_json(self, webhook_server):
        provider = WebhookProvider(str(webhook_server.make_url("/hook")), timeout=5)

        await provider.send("Partner 1 reached Agent")

        assert webhook_server.received == [{"text": "Partner 1 reached Agent"}]

    @pytest.mark.asyncio
    async def test_rejected(self, webhook_server):
        provider = WebhookProvider(str(webhook_server.make_url("/broken")), timeout=5)

        with pytest.raises(NotificationError) as exc:
            await provider.send("hello")

        assert exc.value.kind == "webhook_rejected"
        assert exc.value.details["status"] == 500

    @pytest.mark.asyncio
    async def test_unreachable(self):
        provider = WebhookProvider("http://127.0.0.1:1/hook", timeout=2)

        with pytest.raises(NotificationError) as exc:
            await provider.send("hello")

        assert exc.value.kind == "webhook_unreachable"

    @pytest.mark.asyncio
    async def test_service_publishes_through_webhook(self, webhook_server):
        service = NotificationService(WebhookProvider(str(webhook_server.make_url("/hook"))))

        assert await service.publish("hi") is True
        assert webhook_server.received == [{"text": "hi"}]
