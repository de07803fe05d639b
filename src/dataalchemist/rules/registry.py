from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from .base import (
    RULE_TYPES,
    CoRun,
    GroupSelector,
    LoadLimit,
    PatternMatch,
    PhaseWindow,
    Precedence,
    Rule,
    SlotRestriction,
)

assert len({cls.TYPE for cls in RULE_TYPES}) == len(
    RULE_TYPES
), "Duplicate TYPE tag in RULE_TYPES"

# Map stable type tags -> rule class
RULES: Dict[str, type] = {cls.TYPE: cls for cls in RULE_TYPES}

GROUP_KINDS = ("ClientGroup", "WorkerGroup")


def list_rule_types() -> list[str]:
    """Return the stable type tags of all rule variants."""
    return [cls.TYPE for cls in RULE_TYPES]


# ---------- Serialization ----------


def _target_to_dict(target: GroupSelector) -> dict[str, str]:
    return {"kind": target.kind, "value": target.value}


def _co_run_to_dict(rule: CoRun) -> dict[str, Any]:
    return {"tasks": list(rule.tasks)}


def _load_limit_to_dict(rule: LoadLimit) -> dict[str, Any]:
    return {
        "target": _target_to_dict(rule.target),
        "maxSlotsPerPhase": rule.max_slots_per_phase,
    }


def _phase_window_to_dict(rule: PhaseWindow) -> dict[str, Any]:
    return {"taskId": rule.task_id, "allowedPhases": list(rule.allowed_phases)}


def _slot_restriction_to_dict(rule: SlotRestriction) -> dict[str, Any]:
    return {
        "target": _target_to_dict(rule.target),
        "minCommonSlots": rule.min_common_slots,
    }


def _pattern_match_to_dict(rule: PatternMatch) -> dict[str, Any]:
    out: dict[str, Any] = {"regex": rule.regex, "template": rule.template}
    if rule.params is not None:
        out["params"] = dict(rule.params)
    return out


def _precedence_to_dict(rule: Precedence) -> dict[str, Any]:
    return {"scope": rule.scope, "priority": rule.priority}


_ENCODERS: Dict[type, Callable[[Any], dict[str, Any]]] = {
    CoRun: _co_run_to_dict,
    LoadLimit: _load_limit_to_dict,
    PhaseWindow: _phase_window_to_dict,
    SlotRestriction: _slot_restriction_to_dict,
    PatternMatch: _pattern_match_to_dict,
    Precedence: _precedence_to_dict,
}

assert set(_ENCODERS) == set(RULE_TYPES), "Every rule variant needs an encoder"


def rule_to_dict(rule: Rule) -> dict[str, Any]:
    """Encode a rule into its rules.json mapping."""
    try:
        encode = _ENCODERS[type(rule)]
    except KeyError:
        raise TypeError(f"Not a rule: {rule!r}") from None
    return {"type": rule.TYPE, **encode(rule)}


# ---------- Deserialization (strict) ----------


def _require(data: Mapping[str, Any], key: str, tag: str) -> Any:
    if key not in data:
        raise ValueError(f"Rule '{tag}' is missing required key '{key}'.")
    return data[key]


def _int(value: Any, key: str, tag: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Rule '{tag}'.{key} must be an integer, got {value!r}.")
    return value


def _str(value: Any, key: str, tag: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Rule '{tag}'.{key} must be a non-empty string.")
    return value.strip()


def _str_list(value: Any, key: str, tag: str) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Rule '{tag}'.{key} must be a list.")
    return tuple(_str(v, key, tag) for v in value)


def _target(data: Mapping[str, Any], tag: str, kinds=GROUP_KINDS) -> GroupSelector:
    target = _require(data, "target", tag)
    if not isinstance(target, Mapping):
        raise ValueError(f"Rule '{tag}'.target must be a mapping with kind and value.")
    kind = _require(target, "kind", tag)
    if kind not in kinds:
        raise ValueError(f"Rule '{tag}'.target.kind must be one of {list(kinds)}.")
    return GroupSelector(kind=kind, value=_str(_require(target, "value", tag), "value", tag))


def _co_run(data: Mapping[str, Any]) -> CoRun:
    tasks = _str_list(_require(data, "tasks", "coRun"), "tasks", "coRun")
    return CoRun(tasks=tuple(dict.fromkeys(tasks)))


def _load_limit(data: Mapping[str, Any]) -> LoadLimit:
    return LoadLimit(
        target=_target(data, "loadLimit", kinds=("WorkerGroup",)),
        max_slots_per_phase=_int(
            _require(data, "maxSlotsPerPhase", "loadLimit"), "maxSlotsPerPhase", "loadLimit"
        ),
    )


def _phase_window(data: Mapping[str, Any]) -> PhaseWindow:
    phases = _require(data, "allowedPhases", "phaseWindow")
    if not isinstance(phases, (list, tuple)):
        raise ValueError("Rule 'phaseWindow'.allowedPhases must be a list.")
    return PhaseWindow(
        task_id=_str(_require(data, "taskId", "phaseWindow"), "taskId", "phaseWindow"),
        allowed_phases=tuple(_int(p, "allowedPhases", "phaseWindow") for p in phases),
    )


def _slot_restriction(data: Mapping[str, Any]) -> SlotRestriction:
    return SlotRestriction(
        target=_target(data, "slotRestriction"),
        min_common_slots=_int(
            _require(data, "minCommonSlots", "slotRestriction"),
            "minCommonSlots",
            "slotRestriction",
        ),
    )


def _pattern_match(data: Mapping[str, Any]) -> PatternMatch:
    params = data.get("params")
    if params is not None and not isinstance(params, Mapping):
        raise ValueError("Rule 'patternMatch'.params must be a mapping if provided.")
    regex = _str(_require(data, "regex", "patternMatch"), "regex", "patternMatch")
    # rules.json written by older tools stores the regex as /body/
    if len(regex) >= 2 and regex.startswith("/") and regex.endswith("/"):
        regex = regex[1:-1]
    return PatternMatch(
        regex=regex,
        template=_str(_require(data, "template", "patternMatch"), "template", "patternMatch"),
        params=dict(params) if params is not None else None,
    )


def _precedence(data: Mapping[str, Any]) -> Precedence:
    scope = data.get("scope", "global")
    if scope not in ("global", "specific"):
        raise ValueError("Rule 'precedence'.scope must be 'global' or 'specific'.")
    return Precedence(
        scope=scope,
        priority=_int(_require(data, "priority", "precedence"), "priority", "precedence"),
    )


_DECODERS: Dict[str, Callable[[Mapping[str, Any]], Rule]] = {
    CoRun.TYPE: _co_run,
    LoadLimit.TYPE: _load_limit,
    PhaseWindow.TYPE: _phase_window,
    SlotRestriction.TYPE: _slot_restriction,
    PatternMatch.TYPE: _pattern_match,
    Precedence.TYPE: _precedence,
}

assert set(_DECODERS) == set(RULES), "Every rule variant needs a decoder"


def rule_from_dict(data: Mapping[str, Any]) -> Rule:
    """Decode a rules.json mapping. Raises ValueError on any shape problem."""
    if not isinstance(data, Mapping) or "type" not in data:
        raise ValueError("A rule must be a mapping with at least the key 'type'.")
    tag = data["type"]
    try:
        decode = _DECODERS[tag]
    except (KeyError, TypeError):
        raise ValueError(
            f"Unknown rule type {tag!r}; expected one of {list_rule_types()}"
        ) from None
    return decode(data)
