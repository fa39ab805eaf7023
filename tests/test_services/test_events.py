"""Tests for event envelopes, WebSocket fan-out and the event publisher."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from pkg.redis.pubsub import RedisPubSubError
from services.events import ConnectionManager, EventPublisher, build_envelope, relay_events


def make_socket():
    socket = AsyncMock()
    socket.client = "127.0.0.1:5000"
    return socket


@pytest.fixture
def manager():
    return ConnectionManager()


class TestBuildEnvelope:
    def test_shape(self):
        envelope = build_envelope("alert", "alerts", {"queueSize": 5}, severity="warning", message="big")
        assert set(envelope) == {"id", "type", "channel", "timestamp", "severity", "message", "data"}
        assert envelope["data"] == {"queueSize": 5}

    def test_optional_fields_omitted(self):
        envelope = build_envelope("trend_update", "trends", {})
        assert "severity" not in envelope
        assert "message" not in envelope

    def test_ids_are_unique(self):
        assert build_envelope("alert", "alerts", {})["id"] != build_envelope("alert", "alerts", {})["id"]


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_connect_accepts_and_tracks(self, manager):
        socket = make_socket()
        await manager.connect(socket)
        socket.accept.assert_awaited_once()
        assert manager.active_connections == 1

        manager.disconnect(socket)
        assert manager.active_connections == 0

    @pytest.mark.asyncio
    async def test_subscribe_ignores_unknown_channels(self, manager):
        socket = make_socket()
        await manager.connect(socket)
        assert manager.subscribe(socket, ["trends", "gossip"]) == {"trends"}
        assert manager.unsubscribe(socket, ["trends"]) == set()

    @pytest.mark.asyncio
    async def test_broadcast_only_to_channel_subscribers(self, manager):
        trends, alerts = make_socket(), make_socket()
        for socket in (trends, alerts):
            await manager.connect(socket)
        manager.subscribe(trends, ["trends"])
        manager.subscribe(alerts, ["alerts"])

        delivered = await manager.broadcast({"id": "1", "channel": "alerts"})

        assert delivered == 1
        alerts.send_json.assert_awaited_once_with({"id": "1", "channel": "alerts"})
        trends.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broadcast_drops_broken_sockets(self, manager):
        broken, healthy = make_socket(), make_socket()
        broken.send_json.side_effect = RuntimeError("closed")
        for socket in (broken, healthy):
            await manager.connect(socket)
            manager.subscribe(socket, ["analytics"])

        delivered = await manager.broadcast({"id": "1", "channel": "analytics"})

        assert delivered == 1
        assert broken not in manager.subscriptions
        assert manager.active_connections == 1


class TestEventPublisher:
    @pytest.mark.asyncio
    async def test_publishes_to_transport(self):
        transport = AsyncMock()
        publisher = EventPublisher(transport=transport, redis_channel="events")

        envelope = await publisher.publish_trend_update("python", 3, 0.25, 12.5)

        transport.publish.assert_awaited_once_with("events", envelope)
        assert envelope["type"] == "trend_update"
        assert envelope["channel"] == "trends"
        assert envelope["data"] == {
            "keyword": "python",
            "newMentions": 3,
            "sentimentChange": 0.25,
            "trendScore": 12.5,
        }

    @pytest.mark.asyncio
    async def test_local_broadcast_without_transport(self, manager):
        socket = make_socket()
        await manager.connect(socket)
        manager.subscribe(socket, ["analytics"])
        publisher = EventPublisher(local=manager)

        envelope = await publisher.publish_analytics_update(12, 40.5, 0.2)

        socket.send_json.assert_awaited_once_with(envelope)
        assert envelope["data"]["postsProcessedLastMinute"] == 12

    @pytest.mark.asyncio
    async def test_transport_failure_is_logged_not_raised(self):
        transport = AsyncMock()
        transport.publish.side_effect = RedisPubSubError("down")

        envelope = await EventPublisher(transport=transport).publish_alert(10, 10)

        assert envelope["type"] == "alert"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("queue_size,severity", [(10, "warning"), (19, "warning"), (20, "error")])
    async def test_alert_severity(self, queue_size, severity):
        envelope = await EventPublisher().publish_alert(queue_size, 10)
        assert envelope["severity"] == severity
        assert envelope["data"] == {"queueSize": queue_size, "threshold": 10}
        assert "reached threshold 10" in envelope["message"]


class TestRelay:
    @pytest.mark.asyncio
    async def test_relays_until_cancelled(self, manager):
        socket = make_socket()
        await manager.connect(socket)
        manager.subscribe(socket, ["trends"])
        delivered = asyncio.Event()
        socket.send_json.side_effect = lambda envelope: delivered.set()

        class Transport:
            async def listen(self, channel):
                yield {"id": "1", "channel": "trends"}
                await asyncio.Event().wait()

        task = asyncio.create_task(relay_events(Transport(), "events", manager))
        await asyncio.wait_for(delivered.wait(), timeout=1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        socket.send_json.assert_awaited_once_with({"id": "1", "channel": "trends"})
