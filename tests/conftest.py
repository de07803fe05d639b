from __future__ import annotations

import pytest

from dataalchemist.state import ClientRecord, Datasets, TaskRecord, WorkerRecord


@pytest.fixture
def clients() -> tuple[ClientRecord, ...]:
    return (
        ClientRecord(
            client_id="C1",
            name="Acme",
            priority_level=3,
            requested_task_ids=("T1",),
            group_tag="vip",
            attributes={"tier": "gold"},
            attributes_text='{"tier":"gold"}',
        ),
        ClientRecord(
            client_id="C2",
            name="Globex",
            priority_level=5,
            requested_task_ids=("T2", "T3"),
        ),
    )


@pytest.fixture
def workers() -> tuple[WorkerRecord, ...]:
    return (
        WorkerRecord(
            worker_id="W1",
            name="Ann",
            skills=("coding", "welding"),
            available_slots=(1, 2, 3),
            max_load_per_phase=2,
            worker_group="ops",
            qualification_level=5,
        ),
        WorkerRecord(
            worker_id="W2",
            name="Bob",
            skills=("coding",),
            available_slots=(1, 2),
            max_load_per_phase=1,
            worker_group="ops",
        ),
    )


@pytest.fixture
def tasks() -> tuple[TaskRecord, ...]:
    return (
        TaskRecord(
            task_id="T1",
            name="Build",
            duration=1,
            required_skills=("coding",),
            preferred_phases=(1, 2),
            max_concurrent=2,
        ),
        TaskRecord(
            task_id="T2",
            name="Weld",
            duration=1,
            required_skills=("welding",),
            preferred_phases=(2, 3),
            max_concurrent=1,
        ),
        TaskRecord(
            task_id="T3",
            name="Test",
            duration=1,
            required_skills=("coding",),
            preferred_phases=(3,),
            max_concurrent=1,
        ),
    )


@pytest.fixture
def datasets(clients, workers, tasks) -> Datasets:
    """A consistent package: validates without any finding."""
    return Datasets(clients=clients, workers=workers, tasks=tasks)
