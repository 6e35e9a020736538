"""
Item (de)serialisation for JSON-like payloads.

Items are tagged with a ``kind`` key ("question" or "flashcard"); payloads
without one are treated as questions when they carry ``question_text`` and as
flashcards otherwise.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterable

from pydantic import TypeAdapter

from studyengine.core.models import Flashcard, Question, StudyItem

_ADAPTERS: dict[str, TypeAdapter] = {
    Question.kind: TypeAdapter(Question),
    Flashcard.kind: TypeAdapter(Flashcard),
}


def _infer_kind(payload: dict[str, Any]) -> str:
    kind = payload.get("kind")
    if kind:
        return kind
    return Question.kind if "question_text" in payload else Flashcard.kind


def item_from_dict(payload: dict[str, Any]) -> StudyItem:
    """Validate a dict into a Question or Flashcard."""
    kind = _infer_kind(payload)
    if kind not in _ADAPTERS:
        raise ValueError(f"Unknown item kind: {kind!r}")
    data = {k: v for k, v in payload.items() if k != "kind"}
    return _ADAPTERS[kind].validate_python(data)


def item_to_dict(item: StudyItem) -> dict[str, Any]:
    """Dump an item to JSON-compatible primitives, tagged with its kind."""
    adapter = _ADAPTERS.get(item.kind)
    data = adapter.dump_python(item, mode="json") if adapter else asdict(item)
    return {"kind": item.kind, **data}


def load_items(path: Path) -> list[StudyItem]:
    """Load a JSON array of items from disk."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("items", [])
    return [item_from_dict(entry) for entry in raw]


def dump_items(items: Iterable[StudyItem], path: Path) -> None:
    payload = [item_to_dict(item) for item in items]
    Path(path).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
