import copy
from datetime import datetime

import pytest

from sheetmerge.commons.exceptions import MergeFailed, MissingJoinKey, NoSourcesSelected
from sheetmerge.schemas.merge_schemas import SourceConfig
from sheetmerge.services.source_config_manager import SourceConfigManager
from sheetmerge.services.table_merger import TableMerger


def source_config(source_id, join_key="id", copy_columns=("v",)):
    return SourceConfig(
        source_table_id=source_id,
        join_key=join_key,
        copy_columns=list(copy_columns),
        enabled=True,
    )


def test_end_to_end_scenario(make_table):
    target = make_table("t", [{"id": "1", "name": "Alice"}, {"id": "2", "name": "Bob"}])
    source = make_table("s", [{"id": "1", "dept": "Eng"}])

    result = TableMerger(
        target,
        [source_config("s", copy_columns=["dept"])],
        [target, source],
    ).merge()

    assert result.rows == [
        {"id": "1", "name": "Alice", "dept": "Eng"},
        {"id": "2", "name": "Bob"},
    ]
    assert result.columns == ["id", "name", "dept"]
    assert result.matched_rows == {"s": 1}
    assert result.sources_merged == 1
    assert result.target_table_id == "t"


def test_join_key_is_case_and_whitespace_insensitive(make_table):
    target = make_table("t", [{"id": " Abc "}])
    source = make_table("s", [{"id": "abc", "v": 1}])

    result = TableMerger(target, [source_config("s")], [target, source]).merge()

    assert result.rows[0]["v"] == 1


def test_numeric_keys_match_text_keys(make_table):
    target = make_table("t", [{"id": 7.0}])
    source = make_table("s", [{"id": "7", "v": "seven"}])

    result = TableMerger(target, [source_config("s")], [target, source]).merge()

    assert result.rows[0]["v"] == "seven"


def test_last_source_wins_on_column_conflict(make_table):
    target = make_table("t", [{"id": 1}])
    source_a = make_table("a", [{"id": 1, "x": 10}])
    source_b = make_table("b", [{"id": 1, "x": 20}])

    result = TableMerger(
        target,
        [
            source_config("a", copy_columns=["x"]),
            source_config("b", copy_columns=["x"]),
        ],
        [target, source_a, source_b],
    ).merge()

    assert result.rows == [{"id": 1, "x": 20}]


def test_last_row_wins_for_duplicate_source_keys(make_table):
    target = make_table("t", [{"id": 1}])
    source = make_table("s", [{"id": 1, "v": "a"}, {"id": 1, "v": "b"}])

    result = TableMerger(target, [source_config("s")], [target, source]).merge()

    assert result.rows == [{"id": 1, "v": "b"}]


def test_merge_does_not_mutate_inputs(make_table):
    target = make_table("t", [{"id": "1", "when": datetime(2024, 1, 1)}, {"id": "2"}])
    source = make_table("s", [{"id": "1", "v": "x"}, {"id": "2", "v": "y"}])
    target_before = copy.deepcopy(target.rows)
    source_before = copy.deepcopy(source.rows)

    result = TableMerger(target, [source_config("s")], [target, source]).merge()
    result.rows[0]["id"] = "changed"

    assert target.rows == target_before
    assert source.rows == source_before


def test_miss_leaves_row_untouched(make_table):
    target = make_table("t", [{"id": "9", "name": "Zed", "v": "keep"}])
    source = make_table("s", [{"id": "1", "v": "x", "w": "y"}])

    result = TableMerger(
        target,
        [source_config("s", copy_columns=["v", "w"])],
        [target, source],
    ).merge()

    assert result.rows == [{"id": "9", "name": "Zed", "v": "keep"}]
    assert result.matched_rows == {"s": 0}


def test_hit_overwrites_with_empty_and_missing_values(make_table):
    target = make_table("t", [{"id": "1", "v": "old", "w": "old"}])
    source = make_table("s", [{"id": "1", "v": ""}], columns=["id", "v", "w"])

    result = TableMerger(
        target,
        [source_config("s", copy_columns=["v", "w"])],
        [target, source],
    ).merge()

    assert result.rows == [{"id": "1", "v": "", "w": None}]


def test_rows_without_key_are_never_matched(make_table):
    target = make_table("t", [{"id": None}, {"name": "no id"}], columns=["id", "name"])
    source = make_table("s", [{"id": None, "v": "x"}, {"v": "y"}], columns=["id", "v"])

    result = TableMerger(target, [source_config("s")], [target, source]).merge()

    assert result.rows == [{"id": None}, {"name": "no id"}]


def test_later_source_sees_earlier_writes(make_table):
    target = make_table("t", [{"id": "1"}])
    source_a = make_table("a", [{"id": "1", "code": "C9"}])
    source_b = make_table("b", [{"code": "c9", "label": "Nine"}])

    result = TableMerger(
        target,
        [
            source_config("a", copy_columns=["code"]),
            source_config("b", join_key="code", copy_columns=["label"]),
        ],
        [target, source_a, source_b],
    ).merge()

    assert result.rows == [{"id": "1", "code": "C9", "label": "Nine"}]


def test_missing_source_table_is_skipped(make_table):
    target = make_table("t", [{"id": "1"}])
    source = make_table("s", [{"id": "1", "v": "x"}])

    result = TableMerger(
        target,
        [source_config("gone"), source_config("s")],
        [target, source],
    ).merge()

    assert result.rows == [{"id": "1", "v": "x"}]
    assert result.sources_merged == 1


def test_no_sources_selected(make_table):
    target = make_table("t", [{"id": "1"}])

    with pytest.raises(NoSourcesSelected):
        TableMerger(target, [], [target]).merge()


def test_missing_join_key_names_the_source_file(make_table):
    target = make_table("t", [{"id": "1"}])
    good = make_table("good", [{"id": "1", "v": "x"}])
    bad = make_table("bad", [{"v": "y"}], file_name="bad.csv")

    with pytest.raises(MissingJoinKey) as exc_info:
        TableMerger(
            target,
            [source_config("good"), source_config("bad", join_key="")],
            [target, good, bad],
        ).merge()

    assert exc_info.value.error_data == {"source_name": "bad.csv"}


def test_empty_overlap_source_is_rejected_as_missing_join_key(make_table):
    target = make_table("t", [{"id": "1"}])
    source = make_table("s", [{"sku": "X", "price": 1}])
    config = SourceConfigManager.default_config(source, target).model_copy(
        update={"enabled": True},
    )

    with pytest.raises(MissingJoinKey):
        TableMerger(target, [config], [target, source]).merge()


def test_unexpected_failure_is_reported_as_merge_failed(make_table, monkeypatch):
    target = make_table("t", [{"id": "1"}])
    source = make_table("s", [{"id": "1", "v": "x"}])
    target_before = copy.deepcopy(target.rows)

    def broken_index(rows, join_key):
        raise RuntimeError("boom")

    monkeypatch.setattr(TableMerger, "build_lookup_index", staticmethod(broken_index))

    with pytest.raises(MergeFailed):
        TableMerger(target, [source_config("s")], [target, source]).merge()

    assert target.rows == target_before


def test_collect_columns_keeps_base_order_then_new_columns():
    rows = [{"b": 1, "x": 2}, {"a": 1, "y": 3, "x": 4}]

    assert TableMerger.collect_columns(["a", "b"], rows) == ["a", "b", "x", "y"]
