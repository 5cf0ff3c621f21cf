"""Table rendering for reports."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

from .errors import ConfigError


class TableStyle(str, Enum):
    rounded = "rounded"
    box = "box"
    colored = "colored"


def build_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    style: TableStyle | str = TableStyle.rounded,
    title: str | None = None,
) -> Table:
    try:
        style = TableStyle(style)
    except ValueError:
        raise ConfigError(
            f"Unknown table style {style!r} (choose from {', '.join(s.value for s in TableStyle)})"
        ) from None

    if style is TableStyle.colored:
        table = Table(
            title=title,
            box=box.HEAVY_HEAD,
            header_style="bold white on blue",
            row_styles=["", "cyan"],
        )
    elif style is TableStyle.box:
        table = Table(title=title, box=box.ASCII, header_style="bold", show_lines=False)
    else:
        table = Table(title=title, box=box.ROUNDED, header_style="bold")

    for header in headers:
        table.add_column(header)
    for row in rows:
        table.add_row(*("" if cell is None else str(cell) for cell in row))
    return table


def print_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    style: TableStyle | str = TableStyle.rounded,
    title: str | None = None,
    console: Console | None = None,
) -> None:
    (console or Console()).print(build_table(headers, rows, style, title))


def print_line(text: str, console: Console | None = None) -> None:
    (console or Console()).print(text, highlight=False, markup=False)
