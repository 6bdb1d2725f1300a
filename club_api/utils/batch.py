"""
Best-effort batch results.

A fan-out over independent items (photo metadata documents, monthly files)
keeps the items that loaded and records why the others did not, so callers
and tests can inspect both without reading logs.
"""
from dataclasses import dataclass, field
from typing import Generic, List, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ItemFailure:
    """One item that could not be read or parsed."""

    key: str
    reason: str


@dataclass
class BatchResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
