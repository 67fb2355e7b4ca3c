"""
Leveled progress events emitted by the pipeline.

The core never writes to the terminal itself; the CLI subscribes a rich
console sink and tests subscribe a plain list.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional

from rich.console import Console
from rich.markup import escape

_LEVEL_STYLES = {
    "debug": "dim",
    "info": "",
    "warning": "yellow",
}


@dataclass(frozen=True)
class ExtractionEvent:
    stage: str               # "fetch", "scope", "build", "crosslink", "assemble", "write"
    message: str
    kind: Optional[str] = None
    count: Optional[int] = None
    level: str = "info"


Listener = Callable[[ExtractionEvent], None]


class EventStream:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def emit(
        self,
        stage: str,
        message: str,
        kind: Optional[str] = None,
        count: Optional[int] = None,
        level: str = "info",
    ) -> ExtractionEvent:
        event = ExtractionEvent(stage=stage, message=message, kind=kind, count=count, level=level)
        for listener in self._listeners:
            listener(event)
        return event

    def warning(self, stage: str, message: str, kind: Optional[str] = None) -> ExtractionEvent:
        return self.emit(stage, message, kind=kind, level="warning")


def console_sink(console: Console, verbose: bool = False) -> Listener:
    """Render events on a rich console; debug events only when verbose."""

    def _render(event: ExtractionEvent) -> None:
        if event.level == "debug" and not verbose:
            return
        style = _LEVEL_STYLES.get(event.level, "")
        prefix = "[yellow]Warning:[/yellow] " if event.level == "warning" else ""
        text = f"{prefix}{escape(event.message)}"
        if style and event.level != "warning":
            text = f"[{style}]{text}[/{style}]"
        console.print(text)

    return _render
