import random
from datetime import timedelta

from conftest import NOW
from src.floodwatch import crud
from src.floodwatch.history import (
    MAX_ENTRIES,
    append_reading,
    build_series,
    get_history,
    history_info,
)


def test_unknown_station_is_empty(db):
    assert get_history(db, "nowhere") == []
    assert history_info(db, "nowhere")["count"] == 0


def test_append_valid_reading(db):
    entries = append_reading(db, "gent", 42.5, NOW, now=NOW)
    assert entries == [{"ts": NOW.isoformat(), "val": 42.5}]
    assert get_history(db, "gent") == entries


def test_invalid_reading_not_stored(db):
    append_reading(db, "gent", 42.5, NOW, now=NOW)
    entries = append_reading(db, "gent", -1.0, NOW + timedelta(minutes=1), now=NOW + timedelta(minutes=1))
    assert [e["val"] for e in entries] == [42.5]
    entries = append_reading(db, "gent", None, NOW + timedelta(minutes=2), now=NOW + timedelta(minutes=2))
    assert len(entries) == 1


def test_legacy_invalid_entries_purged(db):
    crud.set_json(db, crud.HISTORY, "gent", [
        {"ts": NOW.isoformat(), "val": -1.0},
        {"ts": NOW.isoformat(), "val": 0},
        {"ts": "garbage", "val": 10},
        {"ts": NOW.isoformat(), "val": 33},
    ])
    entries = append_reading(db, "gent", 31, NOW + timedelta(minutes=1), now=NOW + timedelta(minutes=1))
    assert [e["val"] for e in entries] == [33, 31]


def test_capped_to_most_recent_500(db):
    start = NOW - timedelta(hours=1)
    for i in range(MAX_ENTRIES + 1):
        ts = start + timedelta(seconds=7 * i)
        append_reading(db, "gent", 100 + i, ts, now=ts)

    entries = get_history(db, "gent")
    assert len(entries) == 500
    assert entries[0]["val"] == 101
    assert entries[-1]["val"] == 100 + MAX_ENTRIES


def test_entries_older_than_24h_pruned(db):
    old = NOW - timedelta(hours=24, seconds=1)
    recent = NOW - timedelta(hours=23)
    crud.set_json(db, crud.HISTORY, "gent", [
        {"ts": old.isoformat(), "val": 50},
        {"ts": recent.isoformat(), "val": 60},
    ])
    entries = append_reading(db, "gent", 70, NOW, now=NOW)
    assert [e["val"] for e in entries] == [60, 70]


def test_zulu_timestamps_accepted(db):
    crud.set_json(db, crud.HISTORY, "gent", [{"ts": "2026-03-14T11:00:00.000Z", "val": 80}])
    entries = append_reading(db, "gent", 70, NOW, now=NOW)
    assert [e["val"] for e in entries] == [80, 70]


def test_history_info(db):
    append_reading(db, "doornik", 90, NOW - timedelta(minutes=30), now=NOW)
    append_reading(db, "doornik", 85, NOW, now=NOW)
    info = history_info(db, "doornik")
    assert info["count"] == 2
    assert info["oldest"] == (NOW - timedelta(minutes=30)).isoformat()
    assert info["latest"] == NOW.isoformat()
    assert info["raw_last"] == {"ts": NOW.isoformat(), "val": 85}


def test_build_series_covers_24h():
    series = build_series(now=NOW, rng=random.Random(7))
    assert len(series) == 97
    assert series[0]["ts"] == (NOW - timedelta(hours=24)).isoformat()
    assert series[-1]["ts"] == NOW.isoformat()
    assert all(50 <= e["val"] <= 120 for e in series)
