"""YAML exporter."""

import yaml

from ..model.result import CommandResult
from .base import Exporter


class YamlExporter(Exporter):
    """Render result records as a YAML list."""

    def render(self, result: CommandResult) -> str:
        if result.data is None:
            return result.message
        return yaml.safe_dump(
            {"items": self.clean_records(result)}, default_flow_style=False, sort_keys=False
        )
