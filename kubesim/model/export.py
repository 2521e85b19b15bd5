"""Export-related models."""

from enum import Enum


class OutputFormat(str, Enum):
    """Supported output formats for command results."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"
