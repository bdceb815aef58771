"""
chat-sync: in-memory real-time chat state.

Users, two-party chats, ordered messages and typing indicators with
synchronous subscriber fan-out.
"""

__version__ = "0.1.0"
__author__ = "chat-sync Contributors"
__description__ = "In-memory real-time chat state store with subscriptions"

from .config import Config, get_config, reload_config
from .logging import get_main_logger, configure_logging
from .exceptions import ChatSyncError
from .store import ChatStateStore

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "Config",
    "get_config",
    "reload_config",
    "get_main_logger",
    "configure_logging",
    "ChatSyncError",
    "ChatStateStore",
]
