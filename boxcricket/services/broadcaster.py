import asyncio
import json
import logging
import threading
from typing import Dict, List, Tuple

from boxcricket.engine.events import MatchEvent

logger = logging.getLogger(__name__)


class Broadcaster:
    """
    Fans committed match events out to Server-Sent-Events listeners.

    Listeners subscribe from the event loop; scoring calls publish from the
    threadpool that runs sync routes, so each queue is fed through its own
    loop with call_soon_threadsafe.
    """

    def __init__(self):
        # match_id -> [(loop, queue)]
        self.active_listeners: Dict[int, List[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = {}
        self._lock = threading.Lock()

    async def subscribe(self, match_id: int) -> asyncio.Queue:
        queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            self.active_listeners.setdefault(match_id, []).append((loop, queue))
            count = len(self.active_listeners[match_id])
        logger.info("SSE client joined match %s (%s listening)", match_id, count)
        return queue

    async def unsubscribe(self, match_id: int, queue: asyncio.Queue) -> None:
        with self._lock:
            listeners = self.active_listeners.get(match_id, [])
            self.active_listeners[match_id] = [entry for entry in listeners if entry[1] is not queue]
            if not self.active_listeners[match_id]:
                del self.active_listeners[match_id]
        logger.info("SSE client left match %s", match_id)

    def listener_count(self, match_id: int) -> int:
        with self._lock:
            return len(self.active_listeners.get(match_id, []))

    def publish(self, event: MatchEvent) -> None:
        """Send one event to everyone watching its match"""
        with self._lock:
            listeners = list(self.active_listeners.get(event.match_id, []))
        if not listeners:
            return

        # SSE frames are "event: <name>\ndata: <json>\n\n"
        message = f"event: {event.type.value}\ndata: {json.dumps(event.to_dict())}\n\n"
        dead = []
        for loop, queue in listeners:
            if loop.is_closed():
                dead.append(queue)
                continue
            try:
                loop.call_soon_threadsafe(queue.put_nowait, message)
            except RuntimeError:
                # Loop closed after the check
                logger.warning("Dropping SSE listener of match %s: event loop is closed", event.match_id)
                dead.append(queue)
        if dead:
            self._drop(event.match_id, dead)
        logger.debug("Published %s to %s listeners of match %s", event.type.value, len(listeners), event.match_id)

    def _drop(self, match_id: int, queues: List[asyncio.Queue]) -> None:
        with self._lock:
            remaining = [
                entry for entry in self.active_listeners.get(match_id, [])
                if not any(entry[1] is queue for queue in queues)
            ]
            if remaining:
                self.active_listeners[match_id] = remaining
            else:
                self.active_listeners.pop(match_id, None)

    def publish_all(self, events: List[MatchEvent]) -> None:
        for event in events:
            self.publish(event)


broadcaster = Broadcaster()
