"""
Invalidation bus

One topic per mutable collection. Subscribers get a bare signal and are
expected to re-fetch; nothing about the change is passed along.
"""
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Union

from ..logging_config import PlannerEventLogger
from ..models import Topic

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class Subscription:
    """Handle returned by `subscribe`; call `unsubscribe()` to stop receiving"""

    def __init__(self, bus: "InvalidationBus", topic: Topic, callback: Callback):
        self._bus = bus
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._bus.unsubscribe(self.topic, self.callback)
            self.active = False


class InvalidationBus:
    """Synchronous, single-threaded pub/sub keyed by topic"""

    def __init__(self, event_logger: Optional[PlannerEventLogger] = None):
        self._subscribers: Dict[Topic, List[Callback]] = defaultdict(list)
        self.event_logger = event_logger or PlannerEventLogger()

    def subscribe(self, topic: Union[Topic, str], callback: Callback) -> Subscription:
        topic = Topic(topic)
        self._subscribers[topic].append(callback)
        return Subscription(self, topic, callback)

    def unsubscribe(self, topic: Union[Topic, str], callback: Callback) -> bool:
        callbacks = self._subscribers.get(Topic(topic), [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    def subscriber_count(self, topic: Union[Topic, str]) -> int:
        return len(self._subscribers.get(Topic(topic), []))

    def publish(self, topic: Union[Topic, str]) -> int:
        """
        Run every callback for the topic to completion, in subscription order.

        A failing subscriber is logged and does not stop the others.
        Returns the number of callbacks invoked.
        """
        topic = Topic(topic)
        callbacks = list(self._subscribers.get(topic, []))
        self.event_logger.log_invalidation(topic.value, len(callbacks))

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception(f"Invalidation subscriber failed on topic {topic.value}")

        return len(callbacks)

    def publish_many(self, topics):
        for topic in dict.fromkeys(Topic(t) for t in topics):
            self.publish(topic)

    def clear(self):
        self._subscribers.clear()
