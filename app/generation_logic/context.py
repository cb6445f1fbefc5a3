"""Append-only record of stage outputs within one pipeline run."""

import json
from collections.abc import Iterator
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from pydantic import BaseModel

TRUNCATION_MARKER = "\n... (truncated)"


def truncate(text: str, budget: int, marker: str = TRUNCATION_MARKER) -> str:
    """Cap *text* at *budget* characters, appending *marker* when something was cut.

    The result never exceeds ``budget + len(marker)``.
    """
    if budget < 0:
        raise ValueError("budget must be non-negative")
    if len(text) <= budget:
        return text
    return text[:budget] + marker


@dataclass(frozen=True)
class ContextEntry:
    stage: str
    title: str
    text: str
    structured: Any = None
    sections: tuple[tuple[str, str], ...] = ()


@dataclass
class PipelineContext:
    """Ordered outputs of completed stages. Entries can be appended but never edited or removed."""

    _entries: list[ContextEntry] = field(default_factory=list)

    def append(self, entry: ContextEntry) -> None:
        if any(existing.stage == entry.stage for existing in self._entries):
            raise ValueError(f"Stage '{entry.stage}' already recorded")
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[ContextEntry, ...]:
        return tuple(self._entries)

    def get(self, stage: str) -> ContextEntry | None:
        return next((entry for entry in self._entries if entry.stage == stage), None)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ContextEntry]:
        return iter(tuple(self._entries))

    def render(self, budget: int, structured_budget: int | None = None) -> str:
        """Project every entry into prompt text, each truncated to its budget.

        Entries carrying structured output are rendered as JSON under *structured_budget*.
        """
        blocks = []
        for entry in self._entries:
            if entry.structured is not None and structured_budget is not None:
                body = truncate(json.dumps(to_jsonable(entry.structured), ensure_ascii=False), structured_budget)
            else:
                body = truncate(entry.text, budget)
            blocks.append(f"### {entry.title}\n{body}")
        return "\n\n".join(blocks)


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value
