"""Result exporters."""

from typing import Dict, Type

from ..model.export import OutputFormat
from .base import Exporter
from .json_exporter import JsonExporter
from .table_exporter import TableExporter
from .yaml_exporter import YamlExporter

# Dictionary mapping output formats to exporter classes
EXPORTERS: Dict[OutputFormat, Type[Exporter]] = {
    OutputFormat.TABLE: TableExporter,
    OutputFormat.JSON: JsonExporter,
    OutputFormat.YAML: YamlExporter,
}


def get_exporter(output_format: OutputFormat) -> Exporter:
    """Select an exporter, falling back to the table view."""
    return EXPORTERS.get(output_format, TableExporter)()


__all__ = ["Exporter", "JsonExporter", "TableExporter", "YamlExporter", "EXPORTERS", "get_exporter"]
