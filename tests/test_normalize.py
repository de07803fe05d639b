from __future__ import annotations

import pandas as pd
import pytest

from dataalchemist.normalize import (
    MAX_RANGE_SPAN,
    header_key,
    is_blank,
    normalize_rows,
    parse_attributes,
    parse_list,
    parse_number_list,
    to_clients,
    to_number,
    to_optional_number,
    to_tasks,
    to_text,
    to_workers,
)


def test_phase_lists_accept_ranges_arrays_and_comma_text() -> None:
    assert parse_number_list("1-3") == (1, 2, 3)
    assert parse_number_list("[1,3,5]") == (1, 3, 5)
    assert parse_number_list("2,4") == (2, 4)


def test_number_list_drops_tokens_that_are_not_numbers() -> None:
    assert parse_number_list("1, x, ,3") == (1, 3)
    assert parse_number_list("3 - 1") == (1, 2, 3)
    assert parse_number_list("") == ()
    assert parse_number_list(None) == ()
    assert parse_number_list([2, "4", "y"]) == (2, 4)


def test_parse_list_trims_and_drops_empty_items() -> None:
    assert parse_list(" a, b,,c ") == ("a", "b", "c")
    assert parse_list('["x", " y "]') == ("x", "y")
    assert parse_list(["p", "", None]) == ("p",)
    assert parse_list(float("nan")) == ()


def test_numbers_degrade_to_default_instead_of_raising() -> None:
    assert to_number("abc") == 0
    assert to_number("") == 0
    assert to_number(None, default=None) is None
    assert to_number("inf") == 0

    value = to_number("3.0")
    assert value == 3 and isinstance(value, int)
    assert to_number(" 2.5 ") == 2.5

    assert to_optional_number("") is None
    assert to_optional_number("junk") == 0


def test_text_and_blank_helpers() -> None:
    assert to_text(4.0) == "4"
    assert to_text("  T1 ") == "T1"
    assert is_blank("   ")
    assert is_blank(float("nan"))
    assert not is_blank(0)
    assert header_key("Requested_Task IDs") == "requestedtaskids"


def test_attributes_must_be_a_json_object() -> None:
    assert parse_attributes('{"a": 1}') == {"a": 1}
    assert parse_attributes({"b": 2}) == {"b": 2}
    assert parse_attributes("[1, 2]") is None
    assert parse_attributes("{bad") is None
    assert parse_attributes("") is None


def test_clients_map_header_synonyms_and_keep_unknown_columns() -> None:
    rows = [
        {
            "Client ID": "C1",
            "Name": "Acme",
            "priority": "3",
            "RequestedTaskIDs": "T1, T2",
            "AttributesJSON": '{"tier": "gold"}',
            "Notes": "call first",
        }
    ]

    (client,) = to_clients(rows)

    assert client.client_id == "C1"
    assert client.name == "Acme"
    assert client.priority_level == 3
    assert client.requested_task_ids == ("T1", "T2")
    assert client.attributes == {"tier": "gold"}
    assert client.attributes_text == '{"tier": "gold"}'
    assert client.extra == {"Notes": "call first"}


def test_broken_attributes_keep_their_text() -> None:
    (client,) = to_clients([{"ClientID": "C1", "AttributesJSON": "{bad"}])
    assert client.attributes is None
    assert client.attributes_text == "{bad"


def test_first_column_wins_when_two_headers_map_to_the_same_field() -> None:
    (client,) = to_clients([{"ClientID": "C1", "id": "C2"}])
    assert client.client_id == "C1"
    assert client.extra == {"id": "C2"}


def test_extra_synonyms_extend_the_header_table() -> None:
    (worker,) = to_workers(
        [{"WorkerID": "W1", "Crew": "ops", "Slots": "1-2"}], {"Crew": "WorkerGroup"}
    )
    assert worker.worker_group == "ops"
    assert worker.available_slots == (1, 2)
    assert worker.qualification_level is None


def test_tasks_from_a_dataframe_treat_nan_as_blank() -> None:
    df = pd.DataFrame(
        {
            "TaskID": ["T1", "T2"],
            "TaskName": ["Build", None],
            "Duration": [2.0, float("nan")],
            "PreferredPhases": ["[1,2]", None],
        }
    )

    first, second = to_tasks(df)

    assert first.duration == 2 and isinstance(first.duration, int)
    assert first.preferred_phases == (1, 2)
    assert second.name == ""
    assert second.duration == 0
    assert second.preferred_phases == ()


def test_normalize_rows_dispatches_by_entity() -> None:
    (task,) = normalize_rows("tasks", [{"TaskID": "T1"}])
    assert task.task_id == "T1"

    with pytest.raises(ValueError):
        normalize_rows("projects", [])


def test_oversized_ranges_are_not_expanded() -> None:
    assert parse_number_list("1-1000000000") == ()
    assert len(parse_number_list(f"1-{MAX_RANGE_SPAN}")) == MAX_RANGE_SPAN
    assert parse_number_list(f"0-{MAX_RANGE_SPAN}") == ()
