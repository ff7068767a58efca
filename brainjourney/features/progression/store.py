"""
Key/value stores the progression session persists through.

Both stores speak JSON values: ``get`` returns the decoded value or None,
``set`` encodes and writes. Failures propagate; the session decides what is
fatal.
"""

import json
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import select, insert, update

from brainjourney.core.database import get_db_session, store_entries


class ProgressStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


class InMemoryStore:
    """Dict-backed store; values are round-tripped through JSON like a real backend."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def snapshot(self) -> Dict[str, Any]:
        return {key: json.loads(raw) for key, raw in self._data.items()}


class SqlStore:
    """
    SQL-backed store using the ``store_entries`` table.

    Provides the same interface as InMemoryStore but with durability.
    """

    @staticmethod
    def get(key: str) -> Optional[Any]:
        with get_db_session() as session:
            row = session.execute(
                select(store_entries.c.value).where(store_entries.c.key == key)
            ).first()
        if not row:
            return None
        return json.loads(row.value)

    @staticmethod
    def set(key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with get_db_session() as session:
            exists = session.execute(
                select(store_entries.c.key).where(store_entries.c.key == key)
            ).first()
            if exists:
                session.execute(
                    update(store_entries).where(store_entries.c.key == key).values(value=encoded)
                )
            else:
                session.execute(insert(store_entries).values(key=key, value=encoded))
