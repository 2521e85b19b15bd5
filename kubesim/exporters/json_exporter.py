"""JSON exporter."""

import json

from ..model.result import CommandResult
from .base import Exporter


class JsonExporter(Exporter):
    """Render the whole result record as JSON."""

    def render(self, result: CommandResult) -> str:
        payload = result.model_dump(exclude_none=True)
        if result.data is not None:
            payload["data"] = self.clean_records(result)
        return json.dumps(payload, indent=2)
