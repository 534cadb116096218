from __future__ import annotations

from typing import Any, List, Sequence

DEFAULT_THRESHOLD = 8


class CollapsibleGroup:
    """A titled list of cards showing only the first ``threshold`` until expanded."""

    def __init__(self, title: str, items: Sequence[Any], threshold: int = DEFAULT_THRESHOLD, expanded: bool = False):
        self.title = title
        self.items = list(items)
        self.threshold = max(0, int(threshold))
        self.expanded = expanded

    def __len__(self):
        return len(self.items)

    @property
    def should_collapse(self) -> bool:
        return len(self.items) > self.threshold

    @property
    def hidden_count(self) -> int:
        return max(0, len(self.items) - self.threshold)

    @property
    def visible(self) -> List[Any]:
        if self.expanded or not self.should_collapse:
            return self.items
        return self.items[: self.threshold]

    @property
    def overflow(self) -> List[Any]:
        return self.items[self.threshold:] if self.should_collapse else []

    @property
    def toggle_label(self) -> str:
        if not self.should_collapse:
            return ""
        return "Collapse" if self.expanded else f"Show {self.hidden_count} more"

    def toggle(self) -> "CollapsibleGroup":
        self.expanded = not self.expanded
        return self
