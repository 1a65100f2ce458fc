# tests/test_metadata.py

import json

from combos import Assignment
from config import BASE_NAME, TRAITS_FILE
from metadata import (
    NONE_VALUE,
    generate_json_metadata,
    generate_rarity_stats,
    load_traits,
    traits_frame,
    update_traits,
)
from quota import QuotaTracker
from tests.conftest import make_layer


CATALOG = [
    make_layer(1, "Background", ["blue.png", "red.png"]),
    make_layer(3, "Hat", ["cap.png"], rarity=0.5),
    make_layer(2, "Body", ["round.png"]),
]

RENDERED = [
    (1, [Assignment(1, 1, "blue.png"), Assignment(2, 1, "round.png")]),
    (2, [Assignment(1, 1, "red.png"), Assignment(2, 1, "round.png"), Assignment(3, 0.5, "cap.png")]),
]


def test_traits_frame_orders_columns_by_layer_id() -> None:
    df = traits_frame(RENDERED, CATALOG)

    assert list(df.columns) == ["Background", "Body", "Hat"]
    assert list(df.index) == [1, 2]
    assert df.loc[1, "Hat"] == NONE_VALUE
    assert df.loc[2, "Hat"] == "cap"
    assert df.loc[2, "Background"] == "red"


def test_update_traits_appends_across_runs(build_path) -> None:
    assert update_traits(build_path, [], CATALOG) is None
    assert not (build_path / TRAITS_FILE).exists()

    update_traits(build_path, RENDERED[:1], CATALOG)
    df = update_traits(build_path, RENDERED[1:], CATALOG)

    assert list(df.index) == [1, 2]
    loaded = load_traits(build_path)
    assert list(loaded.index) == [1, 2]
    assert loaded.loc[1, "Hat"] == NONE_VALUE


def test_update_traits_replaces_reused_numbers(build_path) -> None:
    update_traits(build_path, RENDERED, CATALOG)
    replacement = [(2, [Assignment(1, 1, "blue.png"), Assignment(2, 1, "round.png")])]

    df = update_traits(build_path, replacement, CATALOG)

    assert list(df.index) == [1, 2]
    assert df.loc[2, "Hat"] == NONE_VALUE


def test_generate_rarity_stats(capsys) -> None:
    df = traits_frame(RENDERED, CATALOG)
    quotas = QuotaTracker(4)
    quotas.reserve([Assignment(3, 0.5, "cap.png")])

    stats = generate_rarity_stats(df, CATALOG, quotas)

    assert stats["Background"] == {"blue": 0.5, "red": 0.5}
    assert stats["Hat"] == {NONE_VALUE: 0.5, "cap": 0.5}
    assert "Quota this run: 1/2" in capsys.readouterr().out


def test_rarity_stats_quota_counts_only_this_run(capsys) -> None:
    # Ledger holds hats from earlier runs, this run rendered none
    earlier = [
        (n, [Assignment(1, 1, "blue.png"), Assignment(2, 1, "round.png"), Assignment(3, 0.5, "cap.png")])
        for n in range(1, 4)
    ]
    df = traits_frame(earlier, CATALOG)

    generate_rarity_stats(df, CATALOG, QuotaTracker(2))

    out = capsys.readouterr().out
    assert "Quota this run: 0/1" in out
    assert "3/1" not in out


def test_generate_json_metadata(build_path) -> None:
    df = traits_frame(RENDERED, CATALOG)

    metadata_dir = generate_json_metadata(build_path, df)

    item = json.loads((metadata_dir / "2").read_text(encoding="utf-8"))
    assert item["name"] == f"{BASE_NAME} #2"
    assert item["image"].endswith("/2.png")
    assert item["attributes"] == [
        {"trait_type": "Background", "value": "red"},
        {"trait_type": "Body", "value": "round"},
        {"trait_type": "Hat", "value": "cap"},
    ]

    item = json.loads((metadata_dir / "1").read_text(encoding="utf-8"))
    assert {"trait_type": "Hat", "value": "cap"} not in item["attributes"]
