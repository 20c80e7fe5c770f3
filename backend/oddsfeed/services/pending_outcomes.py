"""Outcomes that arrived before their event definition, held for replay."""

from __future__ import annotations

from oddsfeed.services.odds_types import DecodedOutcome


class PendingOutcomeBuffer:
    def __init__(self, max_size: int = 500) -> None:
        self._max_size = max(0, int(max_size))
        self._items: list[DecodedOutcome] = []
        self._dropped = 0

    def add(self, outcome: DecodedOutcome) -> bool:
        """Buffer one outcome; False (and counted as dropped) when full."""
        if len(self._items) >= self._max_size:
            self._dropped += 1
            return False
        self._items.append(outcome)
        return True

    def drain(self) -> list[DecodedOutcome]:
        items, self._items = self._items, []
        return items

    def __len__(self) -> int:
        return len(self._items)

    def stats(self) -> dict[str, int]:
        return {"size": len(self._items), "max_size": self._max_size, "dropped_total": self._dropped}
