"""Tests for the key/value storage and the indexed record store."""

import logging

import pytest

from quiz_import.storage import Collections, LocalStorage, RecordStore


def test_memory_storage_round_trip():
    storage = LocalStorage()
    storage.set("settings", {"budget": 100, "name": "题库"})

    assert storage.get("settings") == {"budget": 100, "name": "题库"}
    assert storage.keys() == ["settings"]
    storage.remove("settings")
    assert storage.get("settings", "missing") == "missing"


def test_directory_storage_persists(tmp_path):
    LocalStorage(tmp_path / "data").set("cost_tracker", [1, 2, 3])

    reopened = LocalStorage(tmp_path / "data")
    assert reopened.get("cost_tracker") == [1, 2, 3]
    assert reopened.keys() == ["cost_tracker"]
    assert not list((tmp_path / "data").glob("*.tmp"))


def test_corrupt_file_reads_as_missing(tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    assert LocalStorage(tmp_path).get("broken", {}) == {}


def test_invalid_key(tmp_path):
    with pytest.raises(ValueError):
        LocalStorage(tmp_path).set("../escape", 1)


def test_persist_logs_instead_of_raising(tmp_path, caplog):
    storage = LocalStorage(tmp_path / "data")
    (tmp_path / "data").rmdir()

    with caplog.at_level(logging.WARNING):
        assert storage.persist("cost_tracker", {"today": 1}) is False
        assert storage.persist("cost_tracker", {object()}) is False
    assert "Could not persist cost_tracker" in caplog.text

    with pytest.raises(OSError):
        storage.set("cost_tracker", {"today": 1})


def test_persist_stores_value(tmp_path):
    storage = LocalStorage(tmp_path)
    assert storage.persist("cost_tracker", {"today": 1})
    assert LocalStorage(tmp_path).get("cost_tracker") == {"today": 1}


def question(record_id, chapter="ch1", status="new"):
    return {"id": record_id, "chapter_id": chapter, "bank_id": "b1", "status": status, "title": "题目"}


def test_record_store_add_and_index():
    store = RecordStore()
    store.add(Collections.QUESTIONS, question("q2"))
    store.add(Collections.QUESTIONS, question("q1"))
    store.add(Collections.QUESTIONS, question("q3", chapter="ch2"))

    found = store.get_by_index(Collections.QUESTIONS, "chapter_id", "ch1")
    assert [r["id"] for r in found] == ["q1", "q2"]
    assert store.count(Collections.QUESTIONS) == 3


def test_record_store_returns_copies():
    store = RecordStore()
    store.add(Collections.QUESTIONS, question("q1"))
    store.get(Collections.QUESTIONS, "q1")["title"] = "changed"
    assert store.get(Collections.QUESTIONS, "q1")["title"] == "题目"


def test_update_reindexes():
    store = RecordStore()
    store.add(Collections.QUESTIONS, question("q1"))
    store.update(Collections.QUESTIONS, question("q1", status="mastered"))

    assert store.get_by_index(Collections.QUESTIONS, "status", "new") == []
    assert len(store.get_by_index(Collections.QUESTIONS, "status", "mastered")) == 1


def test_duplicate_add_raises():
    store = RecordStore()
    store.add(Collections.QUESTIONS, question("q1"))
    with pytest.raises(KeyError):
        store.add(Collections.QUESTIONS, question("q1"))


def test_add_batch_is_all_or_nothing():
    store = RecordStore()
    store.add(Collections.QUESTIONS, question("q1"))
    with pytest.raises(KeyError):
        store.add_batch(Collections.QUESTIONS, [question("q2"), question("q1")])
    assert store.count(Collections.QUESTIONS) == 1


def test_unknown_collection_and_index():
    store = RecordStore()
    with pytest.raises(KeyError):
        store.get_all("nope")
    with pytest.raises(KeyError):
        store.get_by_index(Collections.QUESTIONS, "title", "题目")


def test_delete():
    store = RecordStore()
    store.add(Collections.QUESTIONS, question("q1"))
    store.delete(Collections.QUESTIONS, "q1")
    assert store.get(Collections.QUESTIONS, "q1") is None
    assert store.get_by_index(Collections.QUESTIONS, "chapter_id", "ch1") == []
