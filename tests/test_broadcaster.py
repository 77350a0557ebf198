"""
Tests for the SSE broadcaster.
"""
import asyncio
import json

from boxcricket.engine.events import EventType, MatchEvent
from boxcricket.services.broadcaster import Broadcaster


def make_event(match_id: int, event_type: EventType = EventType.BALL_RECORDED, **payload) -> MatchEvent:
    return MatchEvent(type=event_type, match_id=match_id, payload=payload)


class TestBroadcaster:
    """Listeners only hear their own match"""

    def test_subscribe_and_unsubscribe(self):
        hub = Broadcaster()

        async def scenario():
            first = await hub.subscribe(7)
            second = await hub.subscribe(7)
            assert hub.listener_count(7) == 2
            await hub.unsubscribe(7, first)
            assert hub.listener_count(7) == 1
            await hub.unsubscribe(7, second)

        asyncio.run(scenario())
        assert hub.listener_count(7) == 0
        assert 7 not in hub.active_listeners

    def test_publish_frames_event(self):
        hub = Broadcaster()

        async def scenario():
            queue = await hub.subscribe(3)
            hub.publish(make_event(3, score={"runs": 4}))
            message = await asyncio.wait_for(queue.get(), timeout=1)
            await hub.unsubscribe(3, queue)
            return message

        message = asyncio.run(scenario())
        header, data = message.strip().split("\n")
        assert header == "event: ball_recorded"
        body = json.loads(data[len("data: "):])
        assert body["match_id"] == 3
        assert body["score"] == {"runs": 4}
        assert message.endswith("\n\n")

    def test_other_matches_are_not_told(self):
        hub = Broadcaster()

        async def scenario():
            watching = await hub.subscribe(1)
            hub.publish_all([make_event(2), make_event(1, EventType.WICKET)])
            message = await asyncio.wait_for(watching.get(), timeout=1)
            leftover = watching.qsize()
            await hub.unsubscribe(1, watching)
            return message, leftover

        message, leftover = asyncio.run(scenario())
        assert message.startswith("event: wicket")
        assert leftover == 0

    def test_publish_without_listeners(self):
        Broadcaster().publish(make_event(9))


class ClosingLoop:
    """Loop that closes between the is_closed check and the hand-off"""

    def is_closed(self):
        return False

    def call_soon_threadsafe(self, callback, *args):
        raise RuntimeError("Event loop is closed")


class TestDeadListeners:
    """A listener whose loop is gone is dropped and does not block the rest"""

    def test_closed_loop_is_removed(self):
        hub = Broadcaster()
        stale_loop = asyncio.new_event_loop()
        stale_loop.close()
        hub.active_listeners[5] = [(stale_loop, asyncio.Queue())]

        hub.publish(make_event(5))

        assert hub.listener_count(5) == 0
        assert 5 not in hub.active_listeners

    def test_loop_closing_mid_publish(self):
        hub = Broadcaster()

        async def scenario():
            healthy = await hub.subscribe(4)
            hub.active_listeners[4].insert(0, (ClosingLoop(), asyncio.Queue()))

            hub.publish(make_event(4, EventType.OVER_COMPLETE))
            message = await asyncio.wait_for(healthy.get(), timeout=1)
            count = hub.listener_count(4)
            await hub.unsubscribe(4, healthy)
            return message, count

        message, count = asyncio.run(scenario())
        assert message.startswith("event: over_complete")
        assert count == 1
