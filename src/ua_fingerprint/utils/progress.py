"""Row progress for the batch fingerprint pipeline.

The bar counts annotated requests: the ``ua_fingerprint`` UDF reports every
row it evaluates through :meth:`RowProgress.advance`. Log records are printed
through the same Rich console so they scroll above the bar.
"""

from __future__ import annotations

import threading

from loguru import logger
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from ..config import configure_logging


class RowProgress:
    """Counts fingerprinted rows; draws a Rich bar when enabled.

    Parameters
    ----------
    enabled : bool
        Draw the bar. Rows are counted either way.
    verbose : bool, optional
        Log at INFO instead of WARNING.
    description : str, optional
        Label next to the bar.
    """

    def __init__(
        self,
        enabled: bool,
        verbose: bool = True,
        description: str = "Fingerprinting",
    ):
        self.enabled = enabled
        self.verbose = verbose
        self.description = description
        self.total_rows = 0
        self.rows_done = 0
        self._lock = threading.Lock()
        self._task: TaskID | None = None

        self.console = Console(stderr=True)
        self.progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(complete_style="green", finished_style="bold green"),
            MofNCompleteColumn(),
            TextColumn("rows"),
            TimeRemainingColumn(),
            console=self.console,
            disable=not enabled,
        )

    def _print(self, message: str) -> None:
        self.console.print(message.rstrip(), markup=False, highlight=False)

    def __enter__(self) -> RowProgress:
        configure_logging(self.verbose, self._print if self.enabled else None)
        self.progress.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> bool:
        self.progress.stop()
        if exc_type is None and self._task is not None:
            logger.info("{}/{} rows fingerprinted", self.rows_done, self.total_rows)
        return False

    def start_rows(self, total: int) -> None:
        """Begin counting a table of ``total`` rows."""
        with self._lock:
            self.total_rows = total
            self.rows_done = 0
        self._task = self.progress.add_task(self.description, total=total)

    def advance(self, rows: int = 1) -> None:
        with self._lock:
            self.rows_done += rows
        if self._task is not None:
            self.progress.update(self._task, advance=rows)
