from __future__ import annotations

import textwrap

import pytest

from dataalchemist.io.policy import PolicyWarning, load_policy, parse_policy
from dataalchemist.policy import (
    PRESETS,
    Policy,
    policy_from_dict,
    policy_to_dict,
    preset_weights,
    weights_from_dict,
    weights_to_dict,
)
from dataalchemist.rules.base import CoRun, GroupSelector, LoadLimit
from dataalchemist.state import Weights


def _write(tmp_path, body: str):
    path = tmp_path / "policy.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return str(path)


def test_weights_are_bounded_integers() -> None:
    assert Weights().fairness == 50
    with pytest.raises(ValueError):
        Weights(fairness=101)
    with pytest.raises(TypeError):
        Weights(cost=True)
    with pytest.raises(TypeError):
        Weights(speed=1.5)


def test_presets() -> None:
    assert set(PRESETS) == {"fulfillment", "fair", "fast"}
    assert preset_weights("fast").speed == 90
    assert preset_weights("fair").fairness == 90
    with pytest.raises(ValueError):
        preset_weights("cheap")


def test_weights_use_rules_json_keys() -> None:
    weights = weights_from_dict({"speed": 80, "priorityLevel": 10})
    assert weights_to_dict(weights) == {
        "priorityLevel": 10,
        "requestedTaskFulfillment": 50,
        "fairness": 50,
        "cost": 50,
        "speed": 80,
    }
    with pytest.raises(KeyError):
        weights_from_dict({"luck": 3})


def test_policy_document_round_trip() -> None:
    policy = Policy(rules=(CoRun(("T1", "T2")),), weights=preset_weights("fulfillment"))

    document = policy_to_dict(policy)

    assert document["rules"] == [{"type": "coRun", "tasks": ["T1", "T2"]}]
    assert policy_from_dict(document) == policy


def test_load_policy_from_yaml(tmp_path) -> None:
    path = _write(
        tmp_path,
        """
        rules:
          - type: coRun
            tasks: [T1, T2]
          - type: loadLimit
            target: {kind: WorkerGroup, value: ops}
            maxSlotsPerPhase: 2
        weights: fair
        headers:
          workers:
            Crew: WorkerGroup
        """,
    )

    loaded = load_policy(path)

    assert loaded.policy.rules == (
        CoRun(("T1", "T2")),
        LoadLimit(GroupSelector("WorkerGroup", "ops"), 2),
    )
    assert loaded.policy.weights == PRESETS["fair"]
    assert loaded.headers == {"workers": {"Crew": "WorkerGroup"}}


def test_empty_file_gives_default_policy(tmp_path) -> None:
    loaded = load_policy(_write(tmp_path, ""))
    assert loaded.policy == Policy()
    assert loaded.headers == {}


def test_unknown_entries_warn_and_are_skipped() -> None:
    document = {
        "rules": [{"type": "teleport"}, {"type": "precedence", "priority": 1}],
        "weights": {"speed": 70, "luck": 1},
        "owner": "ops",
    }

    with pytest.warns(PolicyWarning) as record:
        loaded = parse_policy(document)

    assert len(loaded.policy.rules) == 1
    assert loaded.policy.weights.speed == 70
    messages = [str(w.message) for w in record]
    assert any("teleport" in m for m in messages)
    assert any("luck" in m for m in messages)
    assert any("owner" in m for m in messages)


def test_malformed_rule_names_its_position() -> None:
    with pytest.raises(ValueError, match=r"rules\[1\]"):
        parse_policy({"rules": [{"type": "coRun", "tasks": ["T1", "T2"]}, {"type": "coRun"}]})


@pytest.mark.parametrize(
    "document",
    [
        ["not", "a", "mapping"],
        {"rules": {"type": "coRun"}},
        {"weights": 5},
        {"headers": {"projects": {}}},
        {"headers": {"clients": {"Tier": "Tier"}}},
    ],
)
def test_wrong_shapes_raise(document) -> None:
    with pytest.raises(ValueError):
        parse_policy(document)


def test_invalid_yaml_raises_value_error(tmp_path) -> None:
    with pytest.raises(ValueError, match="not valid YAML"):
        load_policy(_write(tmp_path, "rules: [unclosed"))
