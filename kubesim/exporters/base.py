"""Base exporter class."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..model.result import CommandResult


class Exporter(ABC):
    """Base class for rendering command results."""

    @abstractmethod
    def render(self, result: CommandResult) -> str:
        """Render a command result as text."""
        pass

    def clean_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Drop empty fields and stringify enum values for output."""
        cleaned = {}
        for key, value in record.items():
            if value is None:
                continue
            cleaned[key] = getattr(value, "value", value)
        return cleaned

    def clean_records(self, result: CommandResult) -> List[Dict[str, Any]]:
        return [self.clean_record(record) for record in result.data or []]
