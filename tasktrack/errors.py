"""Error types shared by the repository, the MCP layer and the CLI."""

from typing import Any, Optional


class TrackerError(Exception):
    """Base class for every user-facing failure.

    Subclasses set ``error_type``; ``to_dict()`` is what MCP clients receive.
    """

    error_type = "error"

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.error_type, "message": self.message}
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


class ValidationError(TrackerError):
    """Malformed input: bad id, unknown enum value, missing field."""

    error_type = "validation"


class NotFoundError(TrackerError):
    """A lookup by id, prefix, name or path matched nothing."""

    error_type = "not_found"


class AmbiguousError(TrackerError):
    """An id prefix matched more than one task."""

    error_type = "ambiguous"

    def __init__(self, prefix: str, candidates: list[str]):
        self.prefix = prefix
        self.candidates = candidates
        super().__init__(
            f"ambiguous prefix '{prefix}', matches: {', '.join(candidates)}",
            suggestion="Retry with a longer prefix.",
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["candidates"] = self.candidates
        return payload


class ConstraintError(TrackerError):
    """A uniqueness rule would be broken."""

    error_type = "constraint"


class ContentionError(TrackerError):
    """The database stayed locked by another writer after all retries."""

    error_type = "contention"
