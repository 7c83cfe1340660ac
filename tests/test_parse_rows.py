import datetime as dt

import pytest

from wbs_scheduler.parse_rows import dump_rows, item_to_row, load_rows, row_to_item
from wbs_scheduler.scheduling import WBSValidationError
from wbs_scheduler.wbs_models import DependencyType, Predecessor, Status


def test_row_coercion_is_lenient():
    item = row_to_item(
        {
            "id": "t1",
            "wbs_id": " 1.2 ",
            "title": "Pour slab",
            "start_date": "2024-03-04T08:00:00",
            "end_date": "not a date",
            "duration": -3,
            "progress": 150,
            "status": "Paused",
            "level": "2",
            "predecessors": [
                "t0",
                {"id": "t9", "type": "XX", "lag": "2"},
                {"id": "t0", "type": "SS"},
                {"type": "FS"},
            ],
        }
    )

    assert item.wbs_id == "1.2"
    assert item.start_date == dt.date(2024, 3, 4)
    assert item.end_date is None
    assert item.duration == 0
    assert item.progress == 100
    assert item.status == Status.NOT_STARTED
    assert item.declared_level == 2
    assert item.level == 1
    assert item.predecessors == [Predecessor("t0"), Predecessor("t9", DependencyType.FS, 2)]


def test_numeric_ids_are_accepted_as_strings():
    item = row_to_item({"id": 7, "wbs_id": 3})

    assert item.id == "7"
    assert item.wbs_id == "3"


def test_missing_identifiers_raise():
    with pytest.raises(WBSValidationError, match=r"rows\[4\]\.wbs_id"):
        row_to_item({"id": "x"}, index=4)
    with pytest.raises(WBSValidationError):
        row_to_item({"wbs_id": "1"})


def test_timestamps_are_timezone_aware():
    item = row_to_item({"id": "a", "wbs_id": "1", "created_at": "2024-01-01T10:00:00Z", "updated_at": "2024-01-02"})

    assert item.created_at == dt.datetime(2024, 1, 1, 10, tzinfo=dt.timezone.utc)
    assert item.updated_at.tzinfo is not None


def test_item_to_row_keeps_unknown_fields():
    item = row_to_item(
        {
            "id": "a",
            "wbs_id": "1.1",
            "start_date": dt.date(2024, 1, 1),
            "duration": 2,
            "predecessors": [{"id": "z", "type": "FF", "lag": -1}],
            "budgeted_cost": 1500,
        }
    )

    row = item_to_row(item)

    assert row["start_date"] == "2024-01-01"
    assert row["level"] == 1
    assert row["predecessors"] == [{"id": "z", "type": "FF", "lag": -1}]
    assert row["budgeted_cost"] == 1500
    assert "children" not in row


def test_load_rows_accepts_list_or_mapping(tmp_path):
    as_list = tmp_path / "list.yaml"
    as_list.write_text("- {id: a, wbs_id: '1', start_date: 2024-01-01}\n- {id: b, wbs_id: '1.1'}\n")
    as_mapping = tmp_path / "mapping.yaml"
    as_mapping.write_text("rows:\n  - id: a\n    wbs_id: '2'\n")

    items = load_rows(str(as_list))

    assert [i.id for i in items] == ["a", "b"]
    assert items[0].start_date == dt.date(2024, 1, 1)
    assert [i.wbs_id for i in load_rows(str(as_mapping))] == ["2"]


def test_load_rows_rejects_other_documents(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("just a string\n")

    with pytest.raises(WBSValidationError):
        load_rows(str(bad))


def test_dump_rows_round_trips_through_load(tmp_path):
    items = [row_to_item({"id": "a", "wbs_id": "1", "status": "Delayed", "end_date": "2024-02-01"})]
    path = tmp_path / "out.yaml"
    path.write_text(dump_rows(items))

    loaded = load_rows(str(path))

    assert loaded[0].status == Status.DELAYED
    assert loaded[0].end_date == dt.date(2024, 2, 1)
