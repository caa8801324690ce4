from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime
from hashlib import sha256
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import RetrievalError, RetrievalErrorKind
from .metrics import retrieval_latency_seconds
from .types import CandidateItem

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RESULTS = 20
TITLE_MAX_CHARS = 120

_TITLE_PREFIX_RE = re.compile(r"^(?:title|session|name)\s*:\s*", re.IGNORECASE)
_LOCATION_LINE_RE = re.compile(
    r"^\s*(?:location|room|stage|venue|booth)\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE
)
_TIME_LINE_RE = re.compile(
    r"^\s*(?:time|date|when|schedule|starts?)\s*:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE
)


class RetrievalSource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    source_table: str = ""
    score: float | None = None
    text_chunk: str = ""
    title: str | None = None
    description: str | None = None
    location: str | None = None
    start_time: str | None = None
    time: str | None = None

    @field_validator("id", "start_time", mode="before")
    @classmethod
    def _stringify(cls, value):  # type: ignore[override]
        if value is None:
            return None
        return str(value)


class RetrievalResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    answer: str | None = None
    sources: list[RetrievalSource] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


def _fingerprint(*parts: str) -> str:
    return sha256("\x1f".join(parts).encode("utf-8")).hexdigest()[:16]


def _first_line(text: str) -> str:
    for line in text.splitlines():
        cleaned = _TITLE_PREFIX_RE.sub("", line.strip())
        if cleaned:
            return cleaned[:TITLE_MAX_CHARS]
    return ""


def _parse_start_time(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def to_candidate(source: RetrievalSource) -> CandidateItem:
    chunk = source.text_chunk or ""
    description = (source.description or chunk).strip()
    title = (source.title or "").strip() or _first_line(chunk) or "Untitled"

    location = (source.location or "").strip() or None
    if location is None:
        match = _LOCATION_LINE_RE.search(chunk)
        location = match.group(1) if match else None

    start_time = _parse_start_time(source.start_time)
    time_text = source.time or (source.start_time if start_time is None else None)
    if time_text is None and start_time is None:
        match = _TIME_LINE_RE.search(chunk)
        time_text = match.group(1) if match else None

    source_id = (source.id or "").strip() or _fingerprint(title, description)
    return CandidateItem(
        title=title,
        description=description,
        source_id=source_id,
        start_time=start_time,
        location=location,
        relevance=source.score,
        source_table=source.source_table or None,
        time_text=time_text,
    )


def parse_payload(payload: Any, max_results: int = DEFAULT_MAX_RESULTS) -> list[CandidateItem]:
    """Turn a decoded endpoint body into candidates, preserving endpoint order."""
    try:
        if isinstance(payload, list):
            sources = [RetrievalSource.model_validate(item) for item in payload]
        elif isinstance(payload, dict):
            sources = RetrievalResponse.model_validate(payload).sources
        else:
            raise RetrievalError(
                RetrievalErrorKind.BAD_RESPONSE, f"unexpected body type {type(payload).__name__}"
            )
    except ValidationError as exc:
        raise RetrievalError(RetrievalErrorKind.BAD_RESPONSE, "schema mismatch") from exc
    return [to_candidate(source) for source in sources[:max_results]]


class RetrievalClient:
    """Client for the external conference search endpoint.

    One POST per call, no retries. Failures surface as :class:`RetrievalError`
    so the caller decides whether to try again.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_results: int = DEFAULT_MAX_RESULTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.max_results = max_results
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    async def search(self, query: str, timeout: float | None = None) -> list[CandidateItem]:
        effective_timeout = timeout if timeout is not None else self.timeout
        started = time.perf_counter()
        try:
            # httpx limits each phase separately; wait_for bounds the whole call
            response = await asyncio.wait_for(
                self._client.post(
                    self.url,
                    json={"query": query},
                    timeout=httpx.Timeout(effective_timeout),
                ),
                timeout=effective_timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise RetrievalError(
                RetrievalErrorKind.TIMEOUT, f"no answer within {effective_timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise RetrievalError(RetrievalErrorKind.UNAVAILABLE, str(exc)) from exc
        finally:
            retrieval_latency_seconds.observe(time.perf_counter() - started)

        if not response.is_success:
            raise RetrievalError(
                RetrievalErrorKind.UNAVAILABLE, f"status {response.status_code}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RetrievalError(RetrievalErrorKind.BAD_RESPONSE, "invalid JSON") from exc

        candidates = parse_payload(payload, self.max_results)
        logger.debug("Retrieval returned %d candidates", len(candidates))
        return candidates

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["RetrievalClient", "RetrievalResponse", "RetrievalSource", "parse_payload", "to_candidate"]
