"""YAML policy loader.

Assumptions (strict):
- The file is YAML (JSON, being a YAML subset, is accepted too) and its
  document is a mapping.
- `rules` (optional) is a list of **mappings**, each with a `type` key and the
  fields of that rule type as written in rules.json.
- `weights` (optional) is either a mapping of weight keys (priorityLevel,
  requestedTaskFulfillment, fairness, cost, speed) or the name of a preset.
- `headers` (optional) maps an entity (clients/workers/tasks) to extra
  header synonyms: {raw header: canonical column}.
- Wrong shapes raise. Unknown top-level keys, unknown rule types and unknown
  weight keys are skipped with a PolicyWarning.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from yaml import YAMLError, safe_load

from dataalchemist.log import get_logger
from dataalchemist.policy import WEIGHT_KEYS, Policy, preset_weights, weights_from_dict
from dataalchemist.rules.base import Rule
from dataalchemist.rules.registry import RULES, rule_from_dict
from dataalchemist.state import CLIENT_FIELDS, TASK_FIELDS, WORKER_FIELDS, Weights

logger = get_logger(__name__)

TOP_LEVEL_KEYS = ("rules", "weights", "headers")
CANONICAL_COLUMNS = {
    "clients": CLIENT_FIELDS,
    "workers": WORKER_FIELDS,
    "tasks": TASK_FIELDS,
}


class PolicyWarning(UserWarning):
    pass


@dataclass(frozen=True, slots=True)
class PolicyFile:
    policy: Policy
    headers: Mapping[str, Mapping[str, str]] = field(default_factory=dict)


def _parse_rules(rules_list: Any) -> List[Rule]:
    if not isinstance(rules_list, list):
        raise ValueError("'rules' must be a list of mappings with at least the key 'type'.")

    rules: List[Rule] = []
    for idx, item in enumerate(rules_list):
        if not isinstance(item, dict) or "type" not in item:
            raise ValueError(f"rules[{idx}] must be a mapping with at least the key 'type'.")
        if item["type"] not in RULES:
            warnings.warn(
                f"Unknown rule type '{item['type']}' in rules[{idx}], skipping.",
                PolicyWarning,
                stacklevel=3,
            )
            continue
        try:
            rules.append(rule_from_dict(item))
        except ValueError as e:
            raise ValueError(f"rules[{idx}]: {e}") from e
    return rules


def _parse_weights(raw: Any) -> Weights:
    if isinstance(raw, str):
        return preset_weights(raw.strip())
    if not isinstance(raw, dict):
        raise ValueError("'weights' must be a mapping or the name of a preset.")

    known: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in WEIGHT_KEYS:
            warnings.warn(
                f"Ignoring unknown weight key: '{key}'", PolicyWarning, stacklevel=3
            )
            continue
        known[key] = value
    return weights_from_dict(known)


def _parse_headers(raw: Any) -> Dict[str, Dict[str, str]]:
    if not isinstance(raw, dict):
        raise ValueError("'headers' must be a mapping of entity -> {header: column}.")

    headers: Dict[str, Dict[str, str]] = {}
    for entity, synonyms in raw.items():
        if entity not in CANONICAL_COLUMNS:
            raise ValueError(
                f"headers: unknown entity '{entity}'; expected one of {list(CANONICAL_COLUMNS)}."
            )
        if not isinstance(synonyms, dict):
            raise ValueError(f"headers.{entity} must be a mapping of header -> column.")
        for header, column in synonyms.items():
            if column not in CANONICAL_COLUMNS[entity]:
                raise ValueError(
                    f"headers.{entity}: '{column}' is not a {entity} column "
                    f"({', '.join(CANONICAL_COLUMNS[entity])})."
                )
        headers[entity] = {str(h): c for h, c in synonyms.items()}
    return headers


def parse_policy(document: Any) -> PolicyFile:
    """Validate a parsed policy document and build the policy from it."""
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ValueError("Policy file must contain a top-level mapping.")

    for key in sorted(k for k in document if k not in TOP_LEVEL_KEYS):
        warnings.warn(
            f"Ignoring unknown policy key: '{key}'", PolicyWarning, stacklevel=2
        )

    rules = _parse_rules(document.get("rules") or [])
    weights = _parse_weights(document["weights"]) if "weights" in document else Weights()
    headers = _parse_headers(document.get("headers") or {})
    return PolicyFile(policy=Policy(rules=tuple(rules), weights=weights), headers=headers)


def load_policy(path: str) -> PolicyFile:
    """Load a policy (rules, weights, header synonyms) from YAML at `path`."""
    with open(path, "r", encoding="utf-8") as stream:
        try:
            parsed = safe_load(stream)
        except YAMLError as e:
            raise ValueError(f"Policy file '{path}' is not valid YAML: {e}") from e

    loaded = parse_policy(parsed)
    logger.info("Loaded %d rule(s) from policy '%s'", len(loaded.policy.rules), path)
    return loaded
