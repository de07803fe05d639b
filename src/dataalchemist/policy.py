"""Allocation policy: the rule list plus prioritization weights.

This is what gets exported next to the cleaned tables as ``rules.json``:

    {"rules": [...], "weights": {"priorityLevel": 50, ...}}
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping

from dataalchemist.rules.base import Rule
from dataalchemist.rules.registry import rule_from_dict, rule_to_dict
from dataalchemist.state import Weights

__all__ = [
    "Policy",
    "WEIGHT_KEYS",
    "PRESETS",
    "preset_weights",
    "weights_to_dict",
    "weights_from_dict",
    "policy_to_dict",
    "policy_from_dict",
]

# rules.json key -> Weights attribute
WEIGHT_KEYS: Dict[str, str] = {
    "priorityLevel": "priority_level",
    "requestedTaskFulfillment": "requested_task_fulfillment",
    "fairness": "fairness",
    "cost": "cost",
    "speed": "speed",
}

assert set(WEIGHT_KEYS.values()) == {f.name for f in fields(Weights)}

PRESETS: Dict[str, Weights] = {
    "fulfillment": Weights(
        priority_level=70, requested_task_fulfillment=90, fairness=40, cost=50, speed=40
    ),
    "fair": Weights(
        priority_level=50, requested_task_fulfillment=60, fairness=90, cost=50, speed=50
    ),
    "fast": Weights(
        priority_level=60, requested_task_fulfillment=50, fairness=40, cost=50, speed=90
    ),
}


@dataclass(frozen=True, slots=True)
class Policy:
    rules: tuple[Rule, ...] = ()
    weights: Weights = field(default_factory=Weights)


def preset_weights(name: str) -> Weights:
    """Return one of the named weight presets (fulfillment, fair, fast)."""
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown weights preset '{name}'; expected one of {sorted(PRESETS)}"
        ) from None


def weights_to_dict(weights: Weights) -> dict[str, int]:
    return {key: getattr(weights, attr) for key, attr in WEIGHT_KEYS.items()}


def weights_from_dict(data: Mapping[str, Any]) -> Weights:
    """Build weights from rules.json keys; missing keys keep their default.

    Unknown keys raise KeyError; callers that want to be lenient filter first.
    """
    unknown = [k for k in data if k not in WEIGHT_KEYS]
    if unknown:
        raise KeyError(f"Unknown weight key(s): {sorted(unknown)}")
    return Weights(**{WEIGHT_KEYS[k]: v for k, v in data.items()})


def policy_to_dict(policy: Policy) -> dict[str, Any]:
    return {
        "rules": [rule_to_dict(r) for r in policy.rules],
        "weights": weights_to_dict(policy.weights),
    }


def policy_from_dict(data: Mapping[str, Any]) -> Policy:
    rules = data.get("rules") or []
    if not isinstance(rules, list):
        raise ValueError("'rules' must be a list of rule mappings.")
    weights = data.get("weights") or {}
    if not isinstance(weights, Mapping):
        raise ValueError("'weights' must be a mapping.")
    return Policy(
        rules=tuple(rule_from_dict(r) for r in rules),
        weights=weights_from_dict(weights),
    )
