"""Indexed record store used as the persistence collaborator."""

import copy
from collections import defaultdict
from typing import Any, Optional


class Collections:
    """Well-known collection names."""
    QUESTION_BANKS = "question_banks"
    CHAPTERS = "chapters"
    QUESTIONS = "questions"
    ANSWER_RECORDS = "answer_records"
    STATISTICS = "statistics"
    APP_SETTINGS = "app_settings"
    WRONG_QUESTIONS = "wrong_questions"
    WRONG_QUESTION_SESSIONS = "wrong_question_sessions"
    STUDY_PLANS = "study_plans"


# Collection name -> indexed fields
DEFAULT_SCHEMA: dict[str, tuple[str, ...]] = {
    Collections.QUESTION_BANKS: ("name",),
    Collections.CHAPTERS: ("bank_id",),
    Collections.QUESTIONS: ("bank_id", "chapter_id", "status"),
    Collections.ANSWER_RECORDS: ("question_id", "session_id"),
    Collections.STATISTICS: (),
    Collections.APP_SETTINGS: (),
    Collections.WRONG_QUESTIONS: ("question_id", "status", "bank_id", "chapter_id"),
    Collections.WRONG_QUESTION_SESSIONS: ("status",),
    Collections.STUDY_PLANS: ("bank_id", "status"),
}


class RecordStore:
    """
    In-memory collections of dict records keyed by `id`, with secondary indexes.

    Records are copied on the way in and out so callers cannot mutate
    stored state by accident.
    """

    def __init__(self, schema: Optional[dict[str, tuple[str, ...]]] = None):
        self.schema = dict(schema or DEFAULT_SCHEMA)
        self._data: dict[str, dict[str, dict]] = {name: {} for name in self.schema}
        self._indexes: dict[str, dict[str, dict[Any, set]]] = {
            name: {field: defaultdict(set) for field in fields}
            for name, fields in self.schema.items()
        }

    def _collection(self, collection: str) -> dict[str, dict]:
        if collection not in self._data:
            raise KeyError(f"Unknown collection: {collection}")
        return self._data[collection]

    def _index(self, collection: str, record: dict) -> None:
        for field, index in self._indexes[collection].items():
            index[record.get(field)].add(record["id"])

    def _unindex(self, collection: str, record: dict) -> None:
        for field, index in self._indexes[collection].items():
            ids = index.get(record.get(field))
            if ids:
                ids.discard(record["id"])

    def add(self, collection: str, record: dict) -> str:
        """Insert a new record. Raises KeyError if the id already exists."""
        records = self._collection(collection)
        if "id" not in record:
            raise ValueError("Record must have an 'id'")
        if record["id"] in records:
            raise KeyError(f"Duplicate id in {collection}: {record['id']}")
        stored = copy.deepcopy(record)
        records[stored["id"]] = stored
        self._index(collection, stored)
        return stored["id"]

    def add_batch(self, collection: str, records: list[dict]) -> list[str]:
        """Insert several records; nothing is stored if any id clashes."""
        existing = self._collection(collection)
        ids = [r.get("id") for r in records]
        if None in ids:
            raise ValueError("Record must have an 'id'")
        clashes = [i for i in ids if i in existing]
        if clashes or len(set(ids)) != len(ids):
            raise KeyError(f"Duplicate ids in {collection}: {clashes or ids}")
        return [self.add(collection, r) for r in records]

    def update(self, collection: str, record: dict) -> None:
        """Replace an existing record. Raises KeyError if it does not exist."""
        records = self._collection(collection)
        if record.get("id") not in records:
            raise KeyError(f"No record {record.get('id')} in {collection}")
        self._unindex(collection, records[record["id"]])
        stored = copy.deepcopy(record)
        records[stored["id"]] = stored
        self._index(collection, stored)

    def get(self, collection: str, record_id: str) -> Optional[dict]:
        record = self._collection(collection).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def get_all(self, collection: str) -> list[dict]:
        return [copy.deepcopy(r) for r in self._collection(collection).values()]

    def get_by_index(self, collection: str, index_name: str, value: Any) -> list[dict]:
        self._collection(collection)
        index = self._indexes[collection].get(index_name)
        if index is None:
            raise KeyError(f"No index {index_name} on {collection}")
        records = self._data[collection]
        return [copy.deepcopy(records[i]) for i in sorted(index.get(value, ()))]

    def delete(self, collection: str, record_id: str) -> None:
        records = self._collection(collection)
        if record_id not in records:
            raise KeyError(f"No record {record_id} in {collection}")
        self._unindex(collection, records.pop(record_id))

    def clear(self, collection: str) -> None:
        self._collection(collection).clear()
        for index in self._indexes[collection].values():
            index.clear()

    def count(self, collection: str) -> int:
        return len(self._collection(collection))
