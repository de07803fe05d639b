from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from dataalchemist.web.api import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def test_ping(client) -> None:
    res = client.get("/api/ping")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_validate_returns_records_findings_and_index(client) -> None:
    res = client.post(
        "/api/validate",
        json={"clients": [{"ClientID": "C1", "ClientName": "Acme", "PriorityLevel": 6}]},
    )

    assert res.status_code == 200
    body = res.json()
    assert body["datasets"]["clients"][0]["client_id"] == "C1"
    assert body["diagnostics"] == [
        {
            "id": "C1",
            "entity": "clients",
            "field": "PriorityLevel",
            "message": "PriorityLevel must be integer between 1-5",
            "severity": "error",
        }
    ]
    assert body["index"] == {"clients:C1:PriorityLevel": 1}
    assert body["summary"]["bySeverity"] == {"error": 1}


def test_validate_reports_rule_cycles(client) -> None:
    tasks = [{"TaskID": t} for t in ("T1", "T2", "T3")]
    rules = [
        {"type": "coRun", "tasks": ["T1", "T2"]},
        {"type": "coRun", "tasks": ["T2", "T3"]},
        {"type": "coRun", "tasks": ["T3", "T1"]},
    ]

    body = client.post("/api/validate", json={"tasks": tasks, "rules": rules}).json()

    assert [d["id"] for d in body["diagnostics"] if d["entity"] == "rules"] == ["T1→T2→T3→T1"]


def test_validate_rejects_malformed_rules(client) -> None:
    res = client.post("/api/validate", json={"rules": [{"type": "teleport"}]})
    assert res.status_code == 422


def test_validate_single_field(client) -> None:
    res = client.post(
        "/api/validate/field", json={"entity": "tasks", "field": "Duration", "value": "0"}
    )
    assert [d["id"] for d in res.json()["diagnostics"]] == ["temp"]


def test_parse_rules(client) -> None:
    res = client.post(
        "/api/rules/parse",
        json={"text": "T1 and T2 run together.", "tasks": [{"TaskID": "T1"}, {"TaskID": "T2"}]},
    )
    assert res.status_code == 200
    assert res.json() == {"rules": [{"type": "coRun", "tasks": ["T1", "T2"]}], "notes": []}


def test_query(client) -> None:
    tasks = [{"TaskID": "T1", "Duration": 1}, {"TaskID": "T2", "Duration": 3}]

    res = client.post("/api/query", json={"target": "tasks", "query": "duration > 2", "tasks": tasks})

    assert [r["task_id"] for r in res.json()["records"]] == ["T2"]
    assert client.post("/api/query", json={"target": "projects"}).status_code == 400


def test_default_weights(client) -> None:
    assert client.get("/api/weights/defaults").json()["speed"] == 50


def test_build_rule_from_form_fields(client) -> None:
    res = client.post("/api/rules/build", json={"type": "phaseWindow", "task_id": "T1", "phases": "1-3"})
    assert res.status_code == 200
    assert res.json() == {"rule": {"type": "phaseWindow", "taskId": "T1", "allowedPhases": [1, 2, 3]}}

    res = client.post(
        "/api/rules/build",
        json={"type": "slotRestriction", "group": "vip", "min_common_slots": "2", "kind": "ClientGroup"},
    )
    assert res.json()["rule"]["target"] == {"kind": "ClientGroup", "value": "vip"}


def test_build_rule_rejects_incomplete_forms(client) -> None:
    assert client.post("/api/rules/build", json={"type": "coRun", "tasks": "T1"}).status_code == 422
    assert client.post("/api/rules/build", json={"type": "teleport"}).status_code == 400
