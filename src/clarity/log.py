"""Terminal output for the CLI and engine diagnostics, rendered with Rich.

Engine modules log state transitions at debug level as
``<Entity> <id>: <transition>`` (for example ``Task 3f2a: pending -> completed``),
visible with ``clarity -v``. The CLI uses ``celebrate`` for reinforcement,
milestone and streak announcements, and ``progress`` for goal progress bars.

Record ids are printed in full so they can be pasted back into commands;
``soft_wrap`` keeps Rich from splitting them across lines.
"""

from __future__ import annotations

from rich.console import Console

console = Console(highlight=False, soft_wrap=True)
_err_console = Console(highlight=False, soft_wrap=True, stderr=True)

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def info(msg: str) -> None:
    console.print(f"[blue]\\[INFO][/blue] {msg}")


def success(msg: str) -> None:
    console.print(f"[green]\\[OK][/green] {msg}")


def warn(msg: str) -> None:
    console.print(f"[yellow]\\[WARN][/yellow] {msg}")


def error(msg: str) -> None:
    _err_console.print(f"[red]\\[ERROR][/red] {msg}")


def debug(msg: str) -> None:
    if _verbose:
        console.print(f"[dim]\\[DEBUG] {msg}[/dim]")


def celebrate(msg: str) -> None:
    """Reinforcement, milestone and streak announcements."""
    console.print(f"[bold magenta]{msg}[/bold magenta]")


def progress_bar(percent: int, width: int = 20) -> str:
    """Markup for a goal progress bar, e.g. ``██████░░░░ 60%``."""
    filled = round(width * percent / 100)
    return f"[green]{'█' * filled}[/green][dim]{'░' * (width - filled)}[/dim] {percent}%"


def progress(label: str, percent: int) -> None:
    console.print(f"{label} {progress_bar(percent)}")
