"""
Display sinks: where the session sends result lists, status text and errors.
The terminal sink re-renders the whole table on every change.
"""
from __future__ import annotations

from typing import Optional, Protocol

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from shared.models.domain import ResultRecord
from shared.models.enums import DisplayStatus, ResultStatus

STATUS_STYLES: dict[ResultStatus, str] = {
    ResultStatus.PROCESSING: "yellow",
    ResultStatus.SUCCESS: "green",
    ResultStatus.ERROR: "red",
}


class DisplaySink(Protocol):
    def render(self, records: list[ResultRecord]) -> None: ...

    def set_status(self, kind: DisplayStatus, text: str) -> None: ...

    def set_quota(self, text: str) -> None: ...

    def error(self, message: str) -> None: ...


def build_results_table(records: list[ResultRecord]) -> Table:
    table = Table(show_header=True, header_style="bold", expand=False)
    table.add_column("ID", overflow="fold")
    table.add_column("状态")
    table.add_column("信息", overflow="fold")
    for record in records:
        style = STATUS_STYLES.get(record.status, "")
        table.add_row(record.id, Text(record.status.value, style=style), record.message)
    return table


class ConsoleSink:
    """Rich-based terminal sink. Use as a context manager to get live refresh."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self.records: list[ResultRecord] = []
        self.status_kind = DisplayStatus.READY
        self.status_text = "就绪"
        self.quota_text = ""
        self.errors: list[str] = []
        self._live: Optional[Live] = None

    def __enter__(self) -> "ConsoleSink":
        self._live = Live(self._renderable(), console=self.console, refresh_per_second=8)
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._live is not None:
            self._live.__exit__(*exc_info)
            self._live = None

    def _renderable(self) -> Group:
        header = Text(self.status_text, style="bold cyan" if self.status_kind is DisplayStatus.PROCESSING else "bold")
        if self.quota_text:
            header.append(f"  {self.quota_text}", style="magenta")
        if not self.records:
            return Group(header, Text("暂无结果", style="dim"))
        return Group(header, build_results_table(self.records))

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self._renderable())

    def render(self, records: list[ResultRecord]) -> None:
        self.records = records
        self._refresh()

    def set_status(self, kind: DisplayStatus, text: str) -> None:
        self.status_kind = kind
        self.status_text = text
        self._refresh()

    def set_quota(self, text: str) -> None:
        self.quota_text = text
        self._refresh()

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.console.print(f"[bold red]{message}[/bold red]")
