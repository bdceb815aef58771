"""
Main CLI entry point for chat-sync.

Provides command-line interface with Rich console output.
"""
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..clock import ManualClock
from ..config import LogLevel, get_config, reload_config, save_config
from ..demo import run_demo_conversation, seed_demo_users
from ..exceptions import ChatSyncError, format_error_for_user
from ..logging import configure_logging, get_main_logger, log_startup
from ..models import Chat, Message, User, describe_content
from ..notifications import MessageNotifier, Notification
from ..store import ChatStateStore

app = typer.Typer(
    name="chat-sync",
    help="In-memory real-time chat state store.",
    add_completion=False,
    rich_markup_mode="rich"
)

config_app = typer.Typer(name="config", help="Configuration management commands")
users_app = typer.Typer(name="users", help="Demo user directory commands")
app.add_typer(config_app, name="config")
app.add_typer(users_app, name="users")

console = Console()


@app.callback()
def main(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """chat-sync: users, chats, messages and typing status with live subscriptions."""
    try:
        config = reload_config(config_file) if config_file else get_config()

        if log_level:
            config.logging.level = LogLevel(log_level.upper())
        if debug:
            config.logging.level = LogLevel.DEBUG

        configure_logging(config.logging)
        log_startup(__version__, str(config_file) if config_file else None)

    except ChatSyncError as e:
        console.print(f"[red]Error initializing chat-sync: {format_error_for_user(e)}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error initializing chat-sync: {e}[/red]")
        sys.exit(1)


def _build_store() -> ChatStateStore:
    config = get_config()
    store = ChatStateStore(clock=ManualClock(), config=config.store)
    seed_demo_users(store)
    return store


@app.command()
def demo():
    """Run the Alice and Bob conversation and show the resulting state."""
    try:
        config = get_config()
        store = _build_store()
        notifications: List[Notification] = []

        # Bob gets notified about Alice's messages once the chat exists
        chat_id = store.create_chat("2", "3")
        notifier = MessageNotifier(store, chat_id, "3", notifications.append,
                                   config.notifications).start()
        result = run_demo_conversation(store)
        notifier.close()

        _display_users(store.list_users())
        _display_chats(store, store.list_chats_for_user("3"), "Bob's chats")
        _display_messages(store, store.list_messages(result.chat_id))

        for notification in notifications:
            console.print(f"[cyan]🔔 {notification.title}:[/cyan] {notification.body}")

    except ChatSyncError as e:
        console.print(f"[red]{format_error_for_user(e)}[/red]")
        sys.exit(1)


@users_app.command("list")
def list_users():
    """List the demo users."""
    _display_users(_build_store().list_users())


@users_app.command("search")
def search_users(query: str = typer.Argument(..., help="Part of a display name")):
    """Search the demo users by display name."""
    users = _build_store().search_users_by_name(query)
    if not users:
        console.print(f"[yellow]No users match '{query}'[/yellow]")
        return
    _display_users(users)


@config_app.command("show")
def show_config():
    """Show current configuration."""
    try:
        config = get_config()

        console.print(Panel.fit(
            f"[bold]Log Level:[/bold] {config.logging.level.value}\n" +
            f"[bold]Log Format:[/bold] {config.logging.format}\n" +
            f"[bold]Log File:[/bold] {config.logging.file or 'Console only'}",
            title="Logging Configuration"
        ))

        console.print(Panel.fit(
            f"[bold]Chat Id Prefix:[/bold] {config.store.chat_id_prefix}\n" +
            f"[bold]Message Id Prefix:[/bold] {config.store.message_id_prefix}\n" +
            f"[bold]User Id Prefix:[/bold] {config.store.user_id_prefix}",
            title="Store Configuration"
        ))

        console.print(Panel.fit(
            f"[bold]Upload Relay:[/bold] {config.upload.base_url}\n" +
            f"[bold]Upload Timeout:[/bold] {config.upload.timeout}s\n" +
            f"[bold]Notifications:[/bold] {config.notifications.enabled}\n" +
            f"[bold]Typing Timeout:[/bold] {config.typing.timeout}s",
            title="Client Configuration"
        ))

    except Exception as e:
        console.print(f"[red]Error showing configuration: {e}[/red]")
        sys.exit(1)


@config_app.command("save")
def save_current_config(
    path: Optional[Path] = typer.Argument(None, help="Where to write the YAML file")
):
    """Write the current configuration to a YAML file."""
    try:
        written = save_config(get_config(), path)
        console.print(f"[green]✓[/green] Configuration saved to {written}")

    except Exception as e:
        console.print(f"[red]Error saving configuration: {e}[/red]")
        sys.exit(1)


@app.command()
def version():
    """Show version information."""
    console.print(Panel.fit(
        f"[bold cyan]chat-sync[/bold cyan] v{__version__}\n\n" +
        "In-memory chat state with live subscriptions.",
        title="Version Information"
    ))


def _display_users(users: List[User]):
    table = Table(title="Users")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Email")
    table.add_column("Status")

    for user in users:
        status = "[green]online[/green]" if user.status.value == "online" else "[dim]offline[/dim]"
        table.add_row(user.id, user.display_name, user.email, status)

    console.print(table)


def _display_name(store: ChatStateStore, user_id: str) -> str:
    try:
        return store.get_user(user_id).display_name
    except ChatSyncError:
        return user_id


def _display_chats(store: ChatStateStore, chats: List[Chat], title: str):
    table = Table(title=title)
    table.add_column("Chat", style="cyan")
    table.add_column("Participants")
    table.add_column("Last message")
    table.add_column("At", style="dim")

    for chat in chats:
        names = ", ".join(_display_name(store, p) for p in chat.participants)
        last = chat.last_message
        preview = f"{_display_name(store, last.sender_id)}: {last.text or last.kind.value}" if last.sender_id else "-"
        table.add_row(chat.id, names, preview, last.timestamp.isoformat())

    console.print(table)


def _display_messages(store: ChatStateStore, messages: List[Message]):
    table = Table(title="Messages")
    table.add_column("Id", style="cyan")
    table.add_column("From", style="bold")
    table.add_column("Content")
    table.add_column("Read")

    for message in messages:
        table.add_row(
            message.id,
            _display_name(store, message.sender_id),
            describe_content(message.content),
            "✓" if message.read else "",
        )

    console.print(table)


def main_entry():
    """Entry point for the CLI application."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        get_main_logger().log_error_with_context(e, {"event_source": "cli"})
        console.print(f"[red]Fatal error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main_entry()
