"""
Data table component for list pages.

Columns declare how a cell is read from a row mapping. Rows are rendered in
the order given; the page decides filtering and ordering before rendering.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

from .base import Component

CellRenderer = Callable[[Mapping[str, Any]], str]


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    # Returns trusted HTML; use for links and buttons built with Component helpers.
    render: Optional[CellRenderer] = None
    numeric: bool = False


class DataTable(Component):
    def __init__(
        self,
        columns: Sequence[Column],
        rows: Sequence[Mapping[str, Any]],
        *,
        table_id: str = "data-table",
        empty_text: str = "No entries found.",
        caption: Optional[str] = None,
    ):
        self.columns = list(columns)
        self.rows = list(rows)
        self.table_id = table_id
        self.empty_text = empty_text
        self.caption = caption

    def render(self) -> str:
        if not self.rows:
            return f'<p class="empty-state" id="{self.escape(self.table_id)}">{self.escape(self.empty_text)}</p>'

        caption = f"<caption>{self.escape(self.caption)}</caption>" if self.caption else ""
        head = "".join(f'<th scope="col">{self.escape(c.label)}</th>' for c in self.columns)
        body = "".join(self._render_row(row) for row in self.rows)
        return (
            f'<table class="data-table" id="{self.escape(self.table_id)}">'
            f"{caption}<thead><tr>{head}</tr></thead>"
            f"<tbody>{body}</tbody></table>"
        )

    def _render_row(self, row: Mapping[str, Any]) -> str:
        cells = []
        for column in self.columns:
            if column.render is not None:
                value = column.render(row)
            else:
                value = self.escape(row.get(column.key))
            css = ' class="numeric"' if column.numeric else ""
            cells.append(f"<td{css}>{value}</td>")
        return f"<tr>{''.join(cells)}</tr>"
