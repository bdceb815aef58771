"""
Listener registry with synchronous fan-out.

Listeners are grouped by key (a user id, a chat id, a (chat, user) pair).
Each registration yields its own Subscription handle; removal goes through
the handle, so registering the same callable twice gives two independent
subscriptions.
"""
import copy
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar

from .logging import get_component_logger

K = TypeVar("K", bound=Hashable)


class Subscription:
    """Handle returned by every subscribe call."""

    def __init__(self, registry: "SubscriptionRegistry", key: Hashable, callback: Callable[[Any], None]):
        self._registry = registry
        self.key = key
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        """Stop receiving updates. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        self._registry._remove(self)

    def __call__(self) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription {self._registry.channel}:{self.key} {state}>"


class SubscriptionRegistry(Generic[K]):
    """Mapping from key to the subscriptions registered under it."""

    def __init__(self, channel: str):
        self.channel = channel
        self.logger = get_component_logger("subscriptions")
        # dict preserves registration order; values unused
        self._handles: Dict[K, Dict[Subscription, None]] = {}

    def add(self, key: K, callback: Callable[[Any], None]) -> Subscription:
        subscription = Subscription(self, key, callback)
        self._handles.setdefault(key, {})[subscription] = None
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        handles = self._handles.get(subscription.key)
        if handles is None:
            return
        handles.pop(subscription, None)
        if not handles:
            del self._handles[subscription.key]

    def count(self, key: Optional[K] = None) -> int:
        """Number of live subscriptions, for one key or overall."""
        if key is not None:
            return len(self._handles.get(key, {}))
        return sum(len(handles) for handles in self._handles.values())

    def notify(self, key: K, payload: Any) -> int:
        """Call every subscription for key with its own copy of payload; returns how many succeeded."""
        handles: List[Subscription] = list(self._handles.get(key, {}))
        delivered = 0
        for subscription in handles:
            # a listener may unsubscribe itself or another one mid fan-out
            if not subscription.active:
                continue
            try:
                subscription.callback(copy.deepcopy(payload))
            except Exception as e:
                self.logger.log_error_with_context(e, {
                    "event_source": "listener",
                    "channel": self.channel,
                    "key": str(key),
                })
                continue
            delivered += 1

        if handles:
            self.logger.log_fanout(self.channel, key, delivered)
        return delivered

    def deliver(self, subscription: Subscription, payload: Any) -> None:
        """Initial replay to a freshly registered subscription."""
        if subscription.active:
            subscription.callback(payload)
