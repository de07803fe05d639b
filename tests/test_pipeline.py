from __future__ import annotations

import textwrap
from dataclasses import replace

import pytest

from dataalchemist.pipeline import (
    ExportBlockedError,
    add_rules_from_text,
    export_package,
    load_datasets,
    review,
    review_files,
)
from dataalchemist.policy import Policy
from dataalchemist.rules.base import CoRun, Precedence
from dataalchemist.state import Datasets


def test_clean_review_is_exportable(datasets) -> None:
    result = review(datasets)
    assert result.diagnostics == ()
    assert result.index == {}
    assert result.summary.total == 0
    assert result.exportable


def test_errors_block_export(tmp_path, datasets) -> None:
    dup = replace(datasets, clients=datasets.clients + (datasets.clients[0],))

    assert not review(dup).exportable
    with pytest.raises(ExportBlockedError) as error:
        export_package(dup, Policy(), tmp_path)
    assert [d.id for d in error.value.errors] == ["C1"]
    assert not (tmp_path / "rules.json").exists()

    written = export_package(dup, Policy(), tmp_path, force=True)
    assert written["rules"].exists()


def test_warnings_do_not_block_export(tmp_path, datasets) -> None:
    busy = replace(datasets.workers[1], max_load_per_phase=5)
    d = replace(datasets, workers=(datasets.workers[0], busy))

    result = review(d)

    assert result.summary.warnings == 1
    assert result.exportable
    assert export_package(d, Policy(), tmp_path)["clients"].exists()


def test_text_rules_are_merged_without_duplicates(datasets) -> None:
    existing = (CoRun(("T1", "T2")),)

    result = add_rules_from_text("T1 and T2 run together. Global precedence 1. Hello", datasets, existing)

    assert result.rules == (CoRun(("T1", "T2")), Precedence("global", 1))
    assert result.added == (Precedence("global", 1),)
    assert result.notes == ('Unrecognized statement: "Hello"',)


def test_load_datasets_without_files() -> None:
    assert load_datasets() == Datasets()


def test_exported_package_reloads_clean(tmp_path, datasets) -> None:
    written = export_package(datasets, Policy(), tmp_path)

    reloaded = load_datasets(
        clients=written["clients"], workers=written["workers"], tasks=written["tasks"]
    )

    assert [c.client_id for c in reloaded.clients] == ["C1", "C2"]
    assert reloaded.workers[0].available_slots == (1, 2, 3)
    assert reloaded.clients[0].attributes == {"tier": "gold"}
    assert review(reloaded).diagnostics == ()


def test_review_files_applies_policy_headers(tmp_path) -> None:
    (tmp_path / "workers.csv").write_text(
        "WorkerID,WorkerName,Skills,AvailableSlots,MaxLoadPerPhase,Crew\n"
        'W1,Ann,coding,"1,2",1,ops\n',
        encoding="utf-8",
    )
    (tmp_path / "tasks.csv").write_text(
        "TaskID,TaskName,Duration,RequiredSkills,PreferredPhases,MaxConcurrent\n"
        "T1,Build,1,coding,[1],1\n",
        encoding="utf-8",
    )
    (tmp_path / "policy.yaml").write_text(
        textwrap.dedent(
            """
            rules:
              - type: loadLimit
                target: {kind: WorkerGroup, value: ops}
                maxSlotsPerPhase: 1
            headers:
              workers:
                Crew: WorkerGroup
            """
        ),
        encoding="utf-8",
    )

    datasets, policy, result = review_files(
        workers=tmp_path / "workers.csv",
        tasks=tmp_path / "tasks.csv",
        policy_path=tmp_path / "policy.yaml",
    )

    assert datasets.workers[0].worker_group == "ops"
    assert len(policy.rules) == 1
    assert result.diagnostics == ()
