"""
Operation results.

A lifecycle operation commits one primary fact (status change, quantity
change, tab close) and then attempts secondary effects (stock, tickets,
audit rows) that may fail independently. The result keeps the two apart
so callers and tests can tell "the order is confirmed" from "the kitchen
got the tickets".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class SideEffectStatus:
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SideEffectOutcome:
    """Outcome of one named secondary effect."""

    name: str
    status: str
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != SideEffectStatus.FAILED

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "status": self.status, "detail": self.detail}


@dataclass
class OperationResult(Generic[T]):
    """Committed primary entity plus the outcome of every side effect."""

    entity: T
    side_effects: list[SideEffectOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def applied(self, name: str, detail: str | None = None) -> None:
        self.side_effects.append(SideEffectOutcome(name, SideEffectStatus.APPLIED, detail))

    def skipped(self, name: str, detail: str | None = None) -> None:
        self.side_effects.append(SideEffectOutcome(name, SideEffectStatus.SKIPPED, detail))

    def failed(self, name: str, detail: str | None = None) -> None:
        self.side_effects.append(SideEffectOutcome(name, SideEffectStatus.FAILED, detail))

    def outcome(self, name: str) -> SideEffectOutcome | None:
        for effect in self.side_effects:
            if effect.name == name:
                return effect
        return None

    @property
    def all_applied(self) -> bool:
        return all(effect.ok for effect in self.side_effects)

    def side_effects_as_dicts(self) -> list[dict[str, Any]]:
        return [effect.as_dict() for effect in self.side_effects]
