from __future__ import annotations
import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from settings import get_settings

SECURE_STRING = "SecureString"
PLAIN_STRING = "String"


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str
    value: Optional[str]


class MockParameterStore:
    """Named configuration values, with secure values withheld unless decrypted."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._parameters: Dict[str, Dict[str, str]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_parameter(self, name: str, value: str, secure: bool = True) -> None:
        with self._lock:
            self._parameters[name] = {
                "type": SECURE_STRING if secure else PLAIN_STRING,
                "value": value,
            }
            self._persist()

    def get_parameter(self, name: str, with_decryption: bool = False) -> Parameter:
        with self._lock:
            entry = self._parameters.get(name)
        if entry is None:
            raise KeyError(f"Parameter {name!r} not found.")

        value: Optional[str] = entry.get("value")
        if entry.get("type") == SECURE_STRING and not with_decryption:
            value = None
        return Parameter(name=name, type=entry.get("type", PLAIN_STRING), value=value)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(
            json.dumps(self._parameters, indent=2, sort_keys=True)
        )

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        for name, entry in data.items():
            if isinstance(entry, dict) and isinstance(entry.get("value"), str):
                self._parameters[name] = {
                    "type": str(entry.get("type", SECURE_STRING)),
                    "value": entry["value"],
                }


@lru_cache
def build_default_parameter_store(path: Optional[str] = None) -> MockParameterStore:
    settings = get_settings()
    store_path = settings.parameter_store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return MockParameterStore(persistence_path=persistence)
