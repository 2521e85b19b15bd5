"""Command parsing and result models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ParsedCommand(BaseModel):
    """A tokenized command line split into its grammatical parts."""

    verb: str
    resource: Optional[str] = None
    name: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    flags: Dict[str, List[str]] = Field(default_factory=dict)

    def flag(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the last value given for a flag."""
        values = self.flags.get(key)
        return values[-1] if values else default

    def flag_values(self, key: str) -> List[str]:
        return list(self.flags.get(key, []))


class CommandResult(BaseModel):
    """Outcome of one command: never an exception, always a record."""

    success: bool
    message: str
    data: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str, data: Optional[List[Dict[str, Any]]] = None) -> "CommandResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, error: Optional[str] = None) -> "CommandResult":
        return cls(success=False, message=message, error=error)
