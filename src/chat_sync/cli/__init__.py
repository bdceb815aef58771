"""Command-line interface for chat-sync."""
