"""Rich table exporter."""

from typing import Any, Dict, List

from rich.console import Console
from rich.table import Table

from ..model.result import CommandResult
from .base import Exporter


class TableExporter(Exporter):
    """Render result records as a kubectl-like table."""

    def build_table(self, records: List[Dict[str, Any]]) -> Table:
        columns: List[str] = []
        for record in records:
            for key in record:
                if key not in columns:
                    columns.append(key)

        table = Table(show_header=True, header_style="bold magenta")
        for column in columns:
            table.add_column(column.upper(), style="cyan" if column == "name" else "white")
        for record in records:
            table.add_row(*(str(record.get(column, "")) for column in columns))
        return table

    def render(self, result: CommandResult) -> str:
        records = self.clean_records(result)
        if not records:
            return result.message

        console = Console(width=120)
        with console.capture() as capture:
            console.print(self.build_table(records))
        return capture.get()
