"""Error taxonomy for the planning pipeline."""

from __future__ import annotations

from enum import Enum


class PlannerError(RuntimeError):
    """Base class for planner failures."""


class InputError(PlannerError):
    """The objective is missing or blank."""


class ConfigError(PlannerError):
    """Required configuration is missing; the service must not start."""


class ReasoningUnavailable(PlannerError):
    """The reasoning collaborator could not be reached or answered garbage."""


class RetrievalErrorKind(str, Enum):
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    BAD_RESPONSE = "bad_response"


class RetrievalError(PlannerError):
    def __init__(self, kind: RetrievalErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        message = f"Retrieval {kind.value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ToolError(PlannerError):
    """A tool call from the reasoning collaborator could not be served."""


__all__ = [
    "ConfigError",
    "InputError",
    "PlannerError",
    "ReasoningUnavailable",
    "RetrievalError",
    "RetrievalErrorKind",
    "ToolError",
]
