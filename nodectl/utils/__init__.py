"""Console helpers for the nodectl CLI."""
from contextlib import contextmanager
from typing import Any, Iterator

from rich.console import Console

REDACT_KEYS = ("password", "passphrase", "secret", "token", "key")

console = Console()
err_console = Console(stderr=True)


def success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def warning(message: str) -> None:
    console.print(f"[yellow]![/yellow] {message}")


def error(message: str) -> None:
    err_console.print(f"[bold red]❌ Error:[/bold red] {message}")


class _Spinner:
    """Thin wrapper around a rich status that can be paused to print results."""

    def __init__(self, message: str):
        self._status = console.status(message, spinner="dots")
        self._running = False

    def start(self):
        if not self._running:
            self._status.start()
            self._running = True

    def stop(self):
        if self._running:
            self._status.stop()
            self._running = False

    def update(self, message: str):
        self._status.update(message)


@contextmanager
def spinner(message: str) -> Iterator[_Spinner]:
    """Show a progress spinner for the duration of the block.

    The spinner refreshes on its own thread and carries no state of the run.
    """
    s = _Spinner(message)
    s.start()
    try:
        yield s
    finally:
        s.stop()


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if v and any(
                redact_key in k.lower()
                for redact_key in REDACT_KEYS
            ) else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    return data
