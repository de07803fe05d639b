from __future__ import annotations

from dataalchemist.rules.base import (
    CoRun,
    GroupSelector,
    LoadLimit,
    PatternMatch,
    PhaseWindow,
    Precedence,
    SlotRestriction,
)
from dataalchemist.rules.builder import (
    build_co_run,
    build_load_limit,
    build_pattern_match,
    build_phase_window,
    build_precedence,
    build_slot_restriction,
)


def test_co_run_needs_two_distinct_tasks() -> None:
    assert build_co_run("T1, T2, T1") == CoRun(("T1", "T2"))
    assert build_co_run(["T1", "T1"]) is None
    assert build_co_run("") is None


def test_load_limit_takes_a_positive_integer() -> None:
    assert build_load_limit("ops", "3") == LoadLimit(GroupSelector("WorkerGroup", "ops"), 3)
    assert build_load_limit("ops", "0") is None
    assert build_load_limit("ops", "2.5") is None
    assert build_load_limit("", 3) is None


def test_phase_window_sorts_and_dedupes_phases() -> None:
    assert build_phase_window("T1", "1-3") == PhaseWindow("T1", (1, 2, 3))
    assert build_phase_window("T1", "[3,1,3]") == PhaseWindow("T1", (1, 3))
    assert build_phase_window("T1", "later") is None
    assert build_phase_window(None, "1") is None


def test_slot_restriction() -> None:
    assert build_slot_restriction("vip", 0, kind="ClientGroup") == SlotRestriction(
        GroupSelector("ClientGroup", "vip"), 0
    )
    assert build_slot_restriction("vip", -1) is None
    assert build_slot_restriction("vip", 1, kind="Team") is None


def test_precedence() -> None:
    assert build_precedence("2") == Precedence("global", 2)
    assert build_precedence(1, scope="specific") == Precedence("specific", 1)
    assert build_precedence(1, scope="local") is None
    assert build_precedence("high") is None


def test_pattern_match_strips_slashes_and_parses_params() -> None:
    assert build_pattern_match("/^T/", "batch", '{"n": 1}') == PatternMatch(
        "^T", "batch", {"n": 1}
    )
    assert build_pattern_match("^T", "batch") == PatternMatch("^T", "batch", None)
    assert build_pattern_match("^T", "batch", "[1]") is None
    assert build_pattern_match("", "batch") is None
