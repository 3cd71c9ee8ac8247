from typing import Dict, Mapping, Optional


class Blackboard:
    """Session-scoped key/value memory written by the navigator.

    Only the latest value per key is kept. Access is serialized by the session,
    so there is no locking here.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def write(self, key: str, value: str) -> None:
        self._data[str(key)] = str(value)

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def merge(self, delta: Mapping[str, str]) -> None:
        for key, value in delta.items():
            self.write(key, value)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)

    def clear(self) -> None:
        self._data.clear()

    def format(self) -> str:
        """Prompt rendering: 'Empty' or 'key: value, key: value'."""
        if not self._data:
            return "Empty"
        return ", ".join(f"{k}: {v}" for k, v in self._data.items())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"Blackboard({self._data!r})"
