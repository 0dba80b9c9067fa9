from __future__ import annotations
import copy
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping, Optional, Tuple

from settings import get_settings

Item = Dict[str, Any]


class MockDynamoDBTable:
    """In-memory table keyed by (partition key, sort key) with JSON persistence."""

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        partition_key: str = "pk",
        sort_key: str = "sk",
    ) -> None:
        self.name = name
        self.partition_key = partition_key
        self.sort_key = sort_key
        self._items: Dict[Tuple[str, str], Item] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_item(self, item: Mapping[str, Any]) -> None:
        key = self._key_of(item)
        stored = copy.deepcopy(dict(item))
        with self._lock:
            previous = self._items.get(key)
            self._items[key] = stored
            try:
                self._persist()
            except (OSError, TypeError, ValueError):
                if previous is None:
                    del self._items[key]
                else:
                    self._items[key] = previous
                raise

    def get_item(self, pk: str, sk: str) -> Optional[Item]:
        with self._lock:
            item = self._items.get((pk, sk))
            if item is None:
                return None
            return copy.deepcopy(item)

    def query(self, pk: str) -> list[Item]:
        """Return deep copies of every item in partition ``pk``, ordered by sort key."""

        with self._lock:
            matches = [
                (key[1], item) for key, item in self._items.items() if key[0] == pk
            ]
        matches.sort(key=lambda pair: pair[0])
        return [copy.deepcopy(item) for _, item in matches]

    def scan(self) -> list[Item]:
        with self._lock:
            return [copy.deepcopy(item) for item in self._items.values()]

    def _key_of(self, item: Mapping[str, Any]) -> Tuple[str, str]:
        try:
            pk = item[self.partition_key]
            sk = item[self.sort_key]
        except KeyError as exc:
            raise ValueError(
                f"Item for table {self.name!r} is missing key attribute {exc.args[0]!r}."
            ) from exc
        if not isinstance(pk, str) or not isinstance(sk, str) or not pk or not sk:
            raise ValueError(f"Item for table {self.name!r} has invalid key attributes.")
        return pk, sk

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = sorted(
            self._items.values(),
            key=lambda item: (item[self.partition_key], item[self.sort_key]),
        )
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = []

        if not isinstance(data, list):
            return

        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                key = self._key_of(item)
            except ValueError:
                continue
            self._items[key] = item


def _build_table(name: str, path: Optional[str]) -> MockDynamoDBTable:
    persistence = Path(path) if path else None
    return MockDynamoDBTable(name=name, persistence_path=persistence)


@lru_cache
def build_alerts_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockDynamoDBTable:
    settings = get_settings()
    return _build_table(
        settings.alerts_table_name if name is None else name,
        settings.alerts_table_path if path is None else path,
    )


@lru_cache
def build_events_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockDynamoDBTable:
    settings = get_settings()
    return _build_table(
        settings.events_table_name if name is None else name,
        settings.events_table_path if path is None else path,
    )
