import asyncio
import logging
import threading
from collections import defaultdict

logger = logging.getLogger(__name__)


# ========== in-process publish/subscribe ==========

# graphql-core runs a subscription by iterating over the async iterable that the root field's
# subscribe function returns, executing the selection set once per item. Events are published from
# ordinary synchronous Django code (see links.signals, running in a request thread) while the
# subscriber is waiting in an asyncio event loop, possibly in another thread, so every hand-off
# goes through loop.call_soon_threadsafe().
#
# This is a single-process hub: subscribers only see events published in the same process.

_CLOSED = object()


class Listener(object):
    """An async iterator over the payloads published on one channel after it was created."""

    def __init__(self, pubsub, channel):
        self.pubsub = pubsub
        self.channel = channel
        self.loop = asyncio.get_running_loop()
        self.queue = asyncio.Queue()
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed:
            raise StopAsyncIteration
        payload = await self.queue.get()
        if payload is _CLOSED:
            raise StopAsyncIteration
        return payload

    def deliver(self, payload):
        self.loop.call_soon_threadsafe(self.queue.put_nowait, payload)

    async def aclose(self):
        if not self.closed:
            self.closed = True
            self.pubsub.unsubscribe(self)
            self.queue.put_nowait(_CLOSED)


class PubSub(object):
    def __init__(self):
        self._lock = threading.Lock()
        self._listeners = defaultdict(list)

    def subscribe(self, channel):
        """Register and return a Listener. Must be called from within a running event loop."""
        listener = Listener(self, channel)
        with self._lock:
            self._listeners[channel].append(listener)
            count = len(self._listeners[channel])
        logger.debug('Subscribed to %s (%d listeners)', channel, count)
        return listener

    def unsubscribe(self, listener):
        with self._lock:
            listeners = self._listeners.get(listener.channel, [])
            if listener in listeners:
                listeners.remove(listener)

    def publish(self, channel, payload):
        with self._lock:
            listeners = list(self._listeners.get(channel, []))
        for listener in listeners:
            try:
                listener.deliver(payload)
            except RuntimeError:
                # the listener's event loop has been closed without unsubscribing
                logger.debug('Dropping listener on %s with a closed event loop', channel)
                listener.closed = True
                self.unsubscribe(listener)

    def listener_count(self, channel):
        with self._lock:
            return len(self._listeners.get(channel, []))


pubsub = PubSub()

NEW_LINK = 'newLink'
NEW_VOTE = 'newVote'
