"""Named tools the reasoning collaborator may call.

The registry is the single dispatch point: the reasoning loop only ever calls
``ToolRegistry.invoke(name, arguments)``, so swapping the model provider never
touches tool logic.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .errors import ToolError
from .metrics import tool_invocations_total

QUERY_CONFERENCE_TOOL = "query_conference_api"
ASSESS_TIMELINESS_TOOL = "assess_event_timeliness"


class QueryConferenceArgs(BaseModel):
    query: str = Field(min_length=1, max_length=500)


class TimelinessEvent(BaseModel):
    source_id: str
    text: str | None = None


class AssessTimelinessArgs(BaseModel):
    events: list[TimelinessEvent] = Field(max_length=50)


@dataclass(frozen=True, slots=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    args_model: type[BaseModel]
    handler: Callable[[Any], Awaitable[dict[str, Any]]]

    def definition(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


QUERY_CONFERENCE_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "description": "Search terms for relevant conference sessions, speakers or partner booths",
        }
    },
    "required": ["query"],
    "additionalProperties": False,
}

ASSESS_TIMELINESS_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "events": {
            "type": "array",
            "description": "Events to assess, usually results returned by query_conference_api",
            "items": {
                "type": "object",
                "properties": {
                    "source_id": {
                        "type": "string",
                        "description": "source_id of the event as returned by the search tool",
                    },
                    "text": {
                        "type": "string",
                        "description": "Free text containing the event date/time, for events not returned by search",
                    },
                },
                "required": ["source_id"],
            },
        }
    },
    "required": ["events"],
    "additionalProperties": False,
}


def query_conference_tool(handler: Callable[[QueryConferenceArgs], Awaitable[dict[str, Any]]]) -> Tool:
    return Tool(
        name=QUERY_CONFERENCE_TOOL,
        description=(
            "Searches the conference database for sessions, talks and partner booths "
            "related to a query. Returns candidates with title, time, location and relevance."
        ),
        parameters=QUERY_CONFERENCE_PARAMETERS,
        args_model=QueryConferenceArgs,
        handler=handler,
    )


def assess_timeliness_tool(
    handler: Callable[[AssessTimelinessArgs], Awaitable[dict[str, Any]]],
) -> Tool:
    return Tool(
        name=ASSESS_TIMELINESS_TOOL,
        description=(
            "Classifies how urgent events are relative to the current time "
            "(immediate, soon, normal, past or unknown). Use it to prioritise sessions."
        ),
        parameters=ASSESS_TIMELINESS_PARAMETERS,
        args_model=AssessTimelinessArgs,
        handler=handler,
    )


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool]) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def definitions(self) -> list[dict[str, Any]]:
        return [tool.definition() for tool in self._tools.values()]

    async def invoke(self, name: str, arguments: str | dict[str, Any] | None) -> dict[str, Any]:
        """Validate ``arguments`` for tool ``name`` and run it.

        Raises:
            ToolError: unknown tool, undecodable or invalid arguments, or a
                handler refusing the call.
        """
        tool = self._tools.get(name)
        if tool is None:
            tool_invocations_total.labels(tool="unknown", result="rejected").inc()
            raise ToolError(f"Unknown tool: {name}")

        raw: Any = arguments
        if raw is None or raw == "":
            raw = {}
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as exc:
                tool_invocations_total.labels(tool=name, result="rejected").inc()
                raise ToolError(f"Arguments for {name} are not valid JSON") from exc

        try:
            args = tool.args_model.model_validate(raw)
        except ValidationError as exc:
            tool_invocations_total.labels(tool=name, result="rejected").inc()
            raise ToolError(f"Invalid arguments for {name}: {exc.error_count()} error(s)") from exc

        try:
            result = await tool.handler(args)
        except ToolError:
            tool_invocations_total.labels(tool=name, result="rejected").inc()
            raise
        tool_invocations_total.labels(tool=name, result="ok").inc()
        return result


__all__ = [
    "ASSESS_TIMELINESS_TOOL",
    "AssessTimelinessArgs",
    "QUERY_CONFERENCE_TOOL",
    "QueryConferenceArgs",
    "TimelinessEvent",
    "Tool",
    "ToolRegistry",
    "assess_timeliness_tool",
    "query_conference_tool",
]
