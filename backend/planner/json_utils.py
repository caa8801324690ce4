from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass(slots=True)
class FinalAnswer:
    summary: str = ""
    rationales: dict[str, str] = field(default_factory=dict)


def extract_json_dict(raw: str) -> dict[str, Any]:
    """Extract a JSON object from model output that may contain prose or code fences."""
    if not isinstance(raw, str):
        raise ValueError("payload must be a string")
    text = raw.strip()
    if not text:
        raise ValueError("payload is empty")

    fence_match = _CODE_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char != "{":
            continue
        try:
            obj, _ = decoder.raw_decode(text[index:])
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    raise ValueError("No JSON object found in payload")


def parse_final_answer(raw: str | None, max_items: int) -> FinalAnswer:
    """Read ``{"summary", "items": [{"source_id", "rationale"}]}`` from the model.

    Plain prose becomes the summary with no rationales. Only the first
    ``max_items`` entries are honoured.
    """
    text = (raw or "").strip()
    if not text:
        return FinalAnswer()
    try:
        obj = extract_json_dict(text)
    except ValueError:
        return FinalAnswer(summary=text)

    entries = obj.get("items")
    if not isinstance(entries, list):
        entries = obj.get("recommendations")
    rationales: dict[str, str] = {}
    for entry in (entries if isinstance(entries, list) else [])[:max_items]:
        if not isinstance(entry, dict):
            continue
        source_id = entry.get("source_id") or entry.get("id")
        rationale = entry.get("rationale") or entry.get("reason")
        if source_id is None or not isinstance(rationale, str) or not rationale.strip():
            continue
        rationales.setdefault(str(source_id), rationale.strip())

    summary = obj.get("summary")
    return FinalAnswer(
        summary=summary.strip() if isinstance(summary, str) else "",
        rationales=rationales,
    )


__all__ = ["FinalAnswer", "extract_json_dict", "parse_final_answer"]
