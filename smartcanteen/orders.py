"""Order aggregation: pending demand per (item, portion size)."""
from collections.abc import Iterable, Mapping
from typing import NamedTuple, Optional

from smartcanteen.schemas import PortionSize


class OrderKey(NamedTuple):
    item_id: str
    size: Optional[PortionSize] = None  # None for legacy bare-id entries

    @classmethod
    def parse(cls, text: str) -> "OrderKey":
        """Parse ``itemId:SIZE`` or a bare ``itemId``. Splits on the first colon only."""
        item_id, sep, size = text.partition(":")
        if not sep:
            return cls(text)
        return cls(item_id, PortionSize(size))

    def __str__(self) -> str:
        if self.size is None:
            return self.item_id
        return f"{self.item_id}:{self.size.value}"


class PendingOrders:
    """Aggregate of confirmed orders. Quantities are always > 0."""

    def __init__(self, entries: Optional[Mapping[OrderKey, int]] = None):
        self._entries: dict[OrderKey, int] = {}
        for key, qty in (entries or {}).items():
            self.add(key, qty)

    @classmethod
    def from_document(cls, document: Optional[Mapping[str, int]]) -> "PendingOrders":
        return cls({OrderKey.parse(k): int(v) for k, v in (document or {}).items()})

    def to_document(self) -> dict[str, int]:
        return {str(k): v for k, v in self._entries.items()}

    def add(self, key: OrderKey, qty: int) -> int:
        """Adjust ``key`` by ``qty`` (may be negative); drops the key at zero or below."""
        new = self._entries.get(key, 0) + qty
        if new <= 0:
            self._entries.pop(key, None)
            return 0
        self._entries[key] = new
        return new

    def merge(self, items: Mapping) -> None:
        for key, qty in items.items():
            if isinstance(key, str):
                key = OrderKey.parse(key)
            self.add(key, qty)

    def total_for_item(self, item_id: str) -> int:
        return sum(qty for key, qty in self._entries.items() if key.item_id == item_id)

    def breakdown(self, item_id: str) -> dict[str, int]:
        """Per-size quantities for one item; legacy bare entries are not broken down."""
        return {
            key.size.value: qty
            for key, qty in self._entries.items()
            if key.item_id == item_id and key.size is not None
        }

    def clear_item(self, item_id: str) -> int:
        keys = [k for k in self._entries if k.item_id == item_id]
        removed = sum(self._entries.pop(k) for k in keys)
        return removed

    def discard(self, key: OrderKey) -> None:
        self._entries.pop(key, None)

    def item_ids(self) -> Iterable[str]:
        return {k.item_id for k in self._entries}

    def items(self):
        return self._entries.items()

    def __getitem__(self, key: OrderKey) -> int:
        return self._entries[key]

    def get(self, key: OrderKey, default: int = 0) -> int:
        return self._entries.get(key, default)

    def __contains__(self, key) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __eq__(self, other) -> bool:
        if isinstance(other, PendingOrders):
            return self._entries == other._entries
        return NotImplemented

    def __repr__(self) -> str:
        return f"PendingOrders({self.to_document()!r})"
