"""Durable-but-best-effort counter stores."""

import json
import logging
from pathlib import Path

from activity_roster.domain.contracts.counter_store import CounterStoreProtocol

logger = logging.getLogger(__name__)


class InMemoryCounterStore(CounterStoreProtocol):
    """Counters that live only as long as the process."""

    def __init__(self) -> None:
        """Initialize the store."""
        self._counters: dict[str, int] = {}

    def get(self, name: str) -> int:
        """Get a counter value, 0 if unset."""
        return self._counters.get(name, 0)

    def set(self, name: str, value: int) -> None:
        """Set a counter value."""
        self._counters[name] = value

    def clear(self) -> None:
        """Remove every counter."""
        self._counters.clear()


class JsonFileCounterStore(CounterStoreProtocol):
    """Counters persisted to a JSON file so they survive a process restart.

    Persistence is best effort: an unreadable file reads as empty and a
    failed write is logged, never raised, because the counters only feed
    recovery heuristics.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize with the file path.

        Args:
            path: JSON file holding the counters. Parent directories are created on write.
        """
        self.path = Path(path)

    def _load(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable counter file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed counter file {self.path}")
            return {}
        return {str(k): int(v) for k, v in data.items() if isinstance(v, int)}

    def _save(self, counters: dict[str, int]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(counters, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to persist counters to {self.path}: {e}")

    def get(self, name: str) -> int:
        """Get a counter value, 0 if unset."""
        return self._load().get(name, 0)

    def set(self, name: str, value: int) -> None:
        """Set a counter value."""
        counters = self._load()
        counters[name] = value
        self._save(counters)

    def clear(self) -> None:
        """Remove every counter."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove counter file {self.path}: {e}")
