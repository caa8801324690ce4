import os
import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure before the app module is imported
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["RETRIEVAL_API_URL"] = "http://retrieval.test/query"
os.environ["SENTRY_DSN"] = ""
os.environ.pop("CONFERENCE_DATE", None)

from backend.planner.errors import RetrievalError, RetrievalErrorKind  # noqa: E402
from backend.planner.reasoning import ReasoningTurn, ToolCall  # noqa: E402
from backend.planner.synthesizer import PlanSynthesizer  # noqa: E402
from backend.planner.types import CandidateItem  # noqa: E402

# Thursday of conference week
REFERENCE_NOW = datetime(2025, 6, 12, 9, 0)


class ScriptedReasoner:
    """Replays canned turns and records every request it receives."""

    def __init__(self, turns):
        self.turns = list(turns)
        self.calls = []
        self.closed = False

    async def complete(self, messages, tools):
        self.calls.append({"messages": list(messages), "tools": tools})
        if not self.turns:
            return ReasoningTurn(content='{"summary": "done", "items": []}')
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        return turn

    async def aclose(self):
        self.closed = True


class FakeRetrieval:
    """Returns scripted outcomes in order; exceptions are raised."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.queries = []
        self.closed = False

    async def search(self, query, timeout=None):
        self.queries.append(query)
        outcome = self.outcomes.pop(0) if self.outcomes else []
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def aclose(self):
        self.closed = True


def tool_call(name, arguments, call_id="call_1"):
    return ReasoningTurn(tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)])


def candidate(source_id, title=None, time_text=None, relevance=None, **kwargs):
    return CandidateItem(
        title=title or f"Session {source_id}",
        description=kwargs.pop("description", f"Description of {source_id}"),
        source_id=source_id,
        time_text=time_text,
        relevance=relevance,
        **kwargs,
    )


def timeout_error():
    return RetrievalError(RetrievalErrorKind.TIMEOUT, "no answer within 30s")


@pytest.fixture
def make_synthesizer():
    def _make(turns, outcomes, **kwargs):
        reasoner = ScriptedReasoner(turns)
        retrieval = FakeRetrieval(outcomes)
        kwargs.setdefault("clock", lambda: REFERENCE_NOW)
        synthesizer = PlanSynthesizer(reasoner, retrieval, conference_name="VivaTech 2025", **kwargs)
        return synthesizer, reasoner, retrieval

    return _make
