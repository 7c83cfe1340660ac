import datetime as dt

import pytest

from wbs_scheduler.hierarchy import build_hierarchy
from wbs_scheduler.identifiers import generate_wbs_id, renumber_all_wbs_items
from wbs_scheduler.scheduling import WBSValidationError
from wbs_scheduler.wbs_models import WBSItem


def _items(*wbs_ids):
    return build_hierarchy([WBSItem(id=f"id-{w}", wbs_id=w) for w in wbs_ids])


def test_root_id_fills_first_gap():
    assert generate_wbs_id(_items("1", "2", "4")) == "3"
    assert generate_wbs_id(_items("1", "1.1", "2")) == "3"
    assert generate_wbs_id(_items("2", "3")) == "1"
    assert generate_wbs_id([]) == "1"


def test_child_id_fills_first_gap_under_parent():
    items = _items("1", "2", "2.1", "2.3", "2.3.1")

    assert generate_wbs_id(items, parent_id="id-2") == "2.2"
    assert generate_wbs_id(items, parent_id="id-2.3") == "2.3.2"
    assert generate_wbs_id(items, parent_id="id-1") == "1.1"


def test_child_id_requires_known_parent_within_depth():
    items = _items("1", "1.1", "1.1.1", "1.1.1.1", "1.1.1.1.1")

    with pytest.raises(WBSValidationError):
        generate_wbs_id(items, parent_id="nope")
    with pytest.raises(WBSValidationError):
        generate_wbs_id(items, parent_id="id-1.1.1.1.1")
    assert generate_wbs_id(items, parent_id="id-1.1.1.1") == "1.1.1.1.2"


def _created(day):
    return dt.datetime(2024, 1, day, tzinfo=dt.timezone.utc)


def test_renumbering_closes_gaps_in_creation_order():
    items = [
        WBSItem(id="a", wbs_id="1", created_at=_created(1)),
        WBSItem(id="b", wbs_id="3", created_at=_created(2)),
        WBSItem(id="c", wbs_id="7", created_at=_created(3)),
    ]

    updates = renumber_all_wbs_items(build_hierarchy(items))

    assert [(u.item.id, u.new_wbs_id) for u in updates] == [("b", "2"), ("c", "3")]


def test_renumbering_uses_creation_time_not_path_order():
    items = [
        WBSItem(id="a", wbs_id="1", created_at=_created(3)),
        WBSItem(id="b", wbs_id="1.1", created_at=_created(1)),
        WBSItem(id="c", wbs_id="2"),
    ]

    updates = renumber_all_wbs_items(build_hierarchy(items))

    assert [(u.item.id, u.new_wbs_id) for u in updates] == [("b", "1"), ("a", "2"), ("c", "3")]
