from predsync.services.merge import index_by_join_key, join_key, merge_records


def test_merge_overlays_secondary_fields_on_matching_primary() -> None:
    primary = [
        {"symbol": "ABC", "target_date": "2026-03-02", "predicted_high": 10.5, "score": 1},
        {"symbol": "XYZ", "target_date": "2026-03-02", "predicted_high": 4.0},
    ]
    secondary = [
        {"symbol": "ABC", "target_date": "2026-03-02", "score": 7, "opportunity": "long"},
    ]

    merged = merge_records(primary, secondary)

    assert merged[0] == {
        "symbol": "ABC",
        "target_date": "2026-03-02",
        "predicted_high": 10.5,
        "score": 7,
        "opportunity": "long",
    }
    assert merged[1] == primary[1]


def test_merge_unmatched_primary_has_no_injected_nulls() -> None:
    primary = [{"symbol": "ABC", "target_date": "2026-03-02", "predicted_low": 9.1}]
    secondary = [{"symbol": "ABC", "target_date": "2026-03-03", "opportunity": "short"}]

    merged = merge_records(primary, secondary)

    assert merged == [{"symbol": "ABC", "target_date": "2026-03-02", "predicted_low": 9.1}]
    assert "opportunity" not in merged[0]


def test_merge_preserves_primary_order_and_length() -> None:
    primary = [
        {"symbol": "C", "target_date": "d1"},
        {"symbol": "A", "target_date": "d1"},
        {"symbol": "C", "target_date": "d1"},
        {"symbol": "B"},
    ]
    secondary = [
        {"symbol": "A", "target_date": "d1", "x": 1},
        {"symbol": "C", "target_date": "d1", "x": 2},
        {"symbol": "Z", "target_date": "d9", "x": 3},
    ]

    merged = merge_records(primary, secondary)

    assert len(merged) == len(primary)
    assert [record["symbol"] for record in merged] == ["C", "A", "C", "B"]
    assert [record.get("x") for record in merged] == [2, 1, 2, None]


def test_merge_with_empty_inputs() -> None:
    assert merge_records([], [{"symbol": "A", "target_date": "d1"}]) == []
    primary = [{"symbol": "A", "target_date": "d1", "v": 1}]
    assert merge_records(primary, []) == primary


def test_merge_does_not_mutate_inputs() -> None:
    primary = [{"symbol": "A", "target_date": "d1", "v": 1}]
    secondary = [{"symbol": "A", "target_date": "d1", "v": 2}]

    merge_records(primary, secondary)

    assert primary == [{"symbol": "A", "target_date": "d1", "v": 1}]
    assert secondary == [{"symbol": "A", "target_date": "d1", "v": 2}]


def test_first_secondary_match_wins() -> None:
    secondary = [
        {"symbol": "A", "target_date": "d1", "rank": 1},
        {"symbol": "A", "target_date": "d1", "rank": 2},
    ]
    index = index_by_join_key(secondary)
    assert index[("A", "d1")]["rank"] == 1

    merged = merge_records([{"symbol": "A", "target_date": "d1"}], secondary)
    assert merged[0]["rank"] == 1


def test_records_missing_join_fields_never_match() -> None:
    assert join_key({"symbol": "A"}) is None
    assert join_key({"symbol": None, "target_date": "d1"}) is None

    primary = [{"symbol": "A", "v": 1}]
    secondary = [{"symbol": "A", "w": 2}]
    assert merge_records(primary, secondary) == [{"symbol": "A", "v": 1}]
