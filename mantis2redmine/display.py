"""Console output for the migration: rich logging and per-stage progress."""

import logging
import os
from collections import deque
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar, cast

from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

T = TypeVar("T")

SUCCESS_LEVEL = 25
NOTICE_LEVEL = 21


# Logger with the success and notice methods added by configure_logging
class ExtendedLogger(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def success(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def notice(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


LOGGING_THEME = Theme(
    {
        "logging.level.debug": "dim",
        "logging.level.info": "blue",
        "logging.level.notice": "cyan",
        "logging.level.warning": "bold yellow",
        "logging.level.error": "bold red",
        "logging.level.critical": "bold red on white",
        "logging.level.success": "bold green",
    }
)

# Shared by the log handler, progress displays and the resolver
console = Console(theme=LOGGING_THEME)

rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    tracebacks_show_locals=False,
    markup=True,
    show_time=True,
    show_level=True,
    enable_link_path=True,
    log_time_format="[%X]",
)


LEVELS = {"NOTICE": NOTICE_LEVEL, "SUCCESS": SUCCESS_LEVEL}


def _log_with_markup(level: int, styled: bool):
    """Build a Logger method that logs at ``level`` with rich markup enabled."""

    def log(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        kwargs.setdefault("extra", {})["markup"] = True
        if styled:
            message = f"[logging.level.success]{message}[/]"
        self._log(level, message, args, stacklevel=2, **kwargs)

    return log


def configure_logging(level: str = "INFO", log_file: str | os.PathLike[str] | None = None) -> ExtendedLogger:
    """Send log records to the rich console and, optionally, to a file.

    Adds the NOTICE level (between INFO and WARNING, less prominent than
    INFO on screen) and the SUCCESS level, with matching logger methods.
    """
    for name, number in LEVELS.items():
        logging.addLevelName(number, name)
    numeric_level = LEVELS.get(level.upper()) or getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [rich_handler]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s")
        )
        file_handler.setLevel(numeric_level)
        handlers.append(file_handler)

    logging.basicConfig(level=numeric_level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True)

    setattr(logging.Logger, "success", _log_with_markup(SUCCESS_LEVEL, styled=True))
    setattr(logging.Logger, "notice", _log_with_markup(NOTICE_LEVEL, styled=False))

    logger = logging.getLogger("mantis2redmine")
    logger.debug("Rich logging configured, log file: %s", log_file)
    return cast(ExtendedLogger, logger)


class ProgressTracker(Generic[T]):
    """
    Progress bar with a rolling log of the most recently processed items below it.

    Used by every apply stage to report per-record progress.
    """

    def __init__(
        self,
        description: str,
        total: int,
        log_title: str = "Recent Items",
        max_log_items: int = 5,
    ):
        self.description = description
        self.total = total
        self.log_title = log_title
        self.progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("({task.completed}/{task.total})"),
            console=console,
        )
        self.task_id = self.progress.add_task(description, total=total)
        self.recent_items: deque[str] = deque(maxlen=max_log_items)
        self.processed_count = 0
        self.live: Live | None = None

    def __enter__(self) -> "ProgressTracker[T]":
        self.live = Live(
            console=console,
            refresh_per_second=2,
            auto_refresh=True,
            vertical_overflow="ellipsis",
            transient=True,
        )
        self.live.__enter__()
        self._update_display()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.live:
            self.live.__exit__(exc_type, exc_val, exc_tb)
            self.live = None

    def add_log_item(self, item: str) -> None:
        self.recent_items.append(item)
        self._update_display()

    def increment(self) -> None:
        self.processed_count += 1
        self.progress.update(self.task_id, completed=self.processed_count)
        self._update_display()

    def _update_display(self) -> None:
        if not self.live:
            return

        log_table = Table.grid(padding=(0, 1))
        log_table.add_column()
        log_table.add_row(Text(f"{self.log_title}:", style="bold yellow"))
        for item in self.recent_items:
            log_table.add_row(Text(f"  - {item}"))

        if self.recent_items:
            combined = Table.grid(padding=1)
            combined.add_column()
            combined.add_row(self.progress)
            combined.add_row(log_table)
            self.live.update(Panel.fit(combined, title=self.description, border_style="blue"))
        else:
            self.live.update(self.progress)

    def track(self, iterable: Iterable[T]) -> Iterable[T]:
        """Yield items from the iterable, advancing the bar after each one."""
        for item in iterable:
            yield item
            self.increment()
