# standpos/services/notification_service.py
import itertools
import threading
from contextlib import contextmanager
from typing import Callable, Dict, List, Tuple

from standpos.utils.logging import get_logger

logger = get_logger(__name__)

#no payload, subscribers re-fetch in full
ORDERS_UPDATED = "pedidosActualizados"

Handler = Callable[[], None]


class NotificationBus:
    """
    In-process publish point shared by independent consumers.
    -publish calls every handler registered at that moment, in registration
     order, synchronously on the calling thread
    -no queue, no retry, no delivery guarantee beyond that
    -one instance per process, passed around by reference
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Tuple[int, Handler]]] = {}
        self._tokens: Dict[int, str] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: Handler) -> int:
        with self._lock:
            token = next(self._ids)
            self._subscribers.setdefault(topic, []).append((token, handler))
            self._tokens[token] = topic
        logger.debug(f"Subscriber {token} registered on {topic}")
        return token

    def unsubscribe(self, token: int) -> bool:
        with self._lock:
            topic = self._tokens.pop(token, None)
            if topic is None:
                return False
            self._subscribers[topic] = [(t, h) for t, h in self._subscribers[topic] if t != token]
        logger.debug(f"Subscriber {token} removed from {topic}")
        return True

    def publish(self, topic: str) -> int:
        """Returns how many handlers were called."""
        with self._lock:
            handlers = list(self._subscribers.get(topic, []))

        for token, handler in handlers:
            try:
                handler()
            except Exception as e:
                #one broken consumer must not keep the others stale
                logger.error(f"Subscriber {token} on {topic} failed: {e}")

        logger.info(f"Published {topic} to {len(handlers)} subscribers")
        return len(handlers)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, []))

    @contextmanager
    def subscription(self, topic: str, handler: Handler):
        """Subscription tied to the lifetime of the with-block."""
        token = self.subscribe(topic, handler)
        try:
            yield token
        finally:
            self.unsubscribe(token)
