"""
Client-side typing indicator with an inactivity window.

The store keeps typing status as a plain flag with no timers; this tracker
is what a compose box uses to turn keystrokes into idle -> typing -> idle
transitions.
"""
import asyncio
from typing import Optional

from .config import TypingConfig
from .logging import get_component_logger
from .store import ChatStateStore


class TypingTracker:
    """Emit typing status for one user in one chat."""

    def __init__(
        self,
        store: ChatStateStore,
        chat_id: str,
        user_id: str,
        config: Optional[TypingConfig] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.store = store
        self.chat_id = chat_id
        self.user_id = user_id
        self.config = config or TypingConfig()
        self.timeout = self.config.timeout
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self.is_typing = False
        self.logger = get_component_logger("typing")

    def keystroke(self) -> None:
        """Register activity; starts typing if idle and pushes back the timeout."""
        # no running loop raises before any state changes
        loop = self._loop or asyncio.get_running_loop()
        if not self.is_typing:
            self.store.set_typing_status(self.chat_id, self.user_id, True)
            self.is_typing = True
        self._arm(loop)

    def stop(self) -> None:
        """Stop typing now (message sent, input cleared, screen left)."""
        self._cancel()
        if self.is_typing:
            self.is_typing = False
            self.store.set_typing_status(self.chat_id, self.user_id, False)

    def _arm(self, loop: asyncio.AbstractEventLoop) -> None:
        self._cancel()
        self._timer = loop.call_later(self.timeout, self._expire)

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        self.logger.debug("Typing timed out", chat_id=self.chat_id, user_id=self.user_id)
        self.stop()
