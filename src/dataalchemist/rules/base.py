"""
Rule model.

Every rule is an immutable value object of one of six variants. The set is
closed: `Rule` is the union of the variant classes and every consumer
(validation, registry, text parser) dispatches over exactly these classes.
Each variant carries a `TYPE` class tag, the stable name used in rules.json.

Rules have no stored id: diagnostics address a rule by its position in the
rule list (``rule-<index>``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Mapping, Optional, Union

__all__ = [
    "GroupKind",
    "GroupSelector",
    "CoRun",
    "LoadLimit",
    "PhaseWindow",
    "SlotRestriction",
    "PatternMatch",
    "Precedence",
    "Rule",
    "RULE_TYPES",
]

GroupKind = Literal["ClientGroup", "WorkerGroup"]
PrecedenceScope = Literal["global", "specific"]


@dataclass(frozen=True, slots=True)
class GroupSelector:
    """Targets every record carrying the group tag `value`.

    Attributes
    ----------
    kind:   Which tag is matched: a client GroupTag or a WorkerGroup.
    value:  The tag itself.
    """

    kind: GroupKind
    value: str


@dataclass(frozen=True, slots=True)
class CoRun:
    """The listed tasks must all run in the same phase."""

    TYPE: ClassVar[str] = "coRun"

    tasks: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class LoadLimit:
    """Cap on the slots per phase taken by the workers of a group."""

    TYPE: ClassVar[str] = "loadLimit"

    target: GroupSelector
    max_slots_per_phase: int


@dataclass(frozen=True, slots=True)
class PhaseWindow:
    """A task may only run in the allowed phases."""

    TYPE: ClassVar[str] = "phaseWindow"

    task_id: str
    allowed_phases: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class SlotRestriction:
    """Members of a group must share at least `min_common_slots` phases."""

    TYPE: ClassVar[str] = "slotRestriction"

    target: GroupSelector
    min_common_slots: int


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Apply rule template `template` to ids matching `regex`.

    `regex` is the pattern body, without surrounding slashes.
    """

    TYPE: ClassVar[str] = "patternMatch"

    regex: str
    template: str
    params: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True, slots=True)
class Precedence:
    TYPE: ClassVar[str] = "precedence"

    scope: PrecedenceScope
    priority: int


Rule = Union[CoRun, LoadLimit, PhaseWindow, SlotRestriction, PatternMatch, Precedence]

RULE_TYPES: tuple[type, ...] = (
    CoRun,
    LoadLimit,
    PhaseWindow,
    SlotRestriction,
    PatternMatch,
    Precedence,
)
