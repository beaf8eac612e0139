"""
Sorting table: drag-and-drop reordering of the items from each row's first cell.

The list is only ever rearranged by a single remove-then-insert performed under
a lock, so it stays a permutation of the source items no matter how drags
interleave. Order is not graded inline; the marking guide carries the expected
order.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from content_model import SortingTableSpec
from widget_base import Widget, WidgetActionError, payload_int


@dataclass(frozen=True)
class SortItem:
    id: str
    text: str


class SortingTableWidget(Widget):
    kind = "sorting_table"
    TEMPLATE = """
<div class="sorting">
  <ul class="sortable-list">
    {% for item in w.items %}
      <li class="sortable-item" draggable="true" data-index="{{ loop.index0 }}" data-item-id="{{ item.id }}">{{ item.text|rich }}</li>
    {% endfor %}
  </ul>
  <p class="muted">Drag and drop to reorder the items.</p>
</div>
"""

    def __init__(self, widget_id: str, reveal, spec: SortingTableSpec, mark=None, guide=None):
        super().__init__(widget_id, reveal, mark, guide)
        self.items: List[SortItem] = []
        for i, row in enumerate(spec.rows):
            label = row.label
            self.items.append(SortItem(id=label.id if label else f"item{i}", text=label.text if label else ""))
        self._source: Optional[int] = None
        self._target: Optional[int] = None
        self._lock = threading.Lock()

    @property
    def texts(self) -> List[str]:
        return [i.text for i in self.items]

    def _check(self, index: int) -> int:
        if not 0 <= index < len(self.items):
            raise WidgetActionError(f"item {index} out of range")
        return index

    def drag_start(self, index: int) -> None:
        with self._lock:
            self._source = self._check(index)
            self._target = None

    def drag_enter(self, index: int) -> None:
        with self._lock:
            self._target = self._check(index)

    def drag_end(self) -> List[SortItem]:
        with self._lock:
            source, target = self._source, self._target
            self._source = self._target = None
            if source is not None and target is not None:
                self._move_locked(source, target)
            return list(self.items)

    def move(self, source: int, target: int) -> List[SortItem]:
        """Whole drag in one call: start at `source`, drop on `target`."""
        with self._lock:
            self._check(source)
            self._check(target)
            self._source = self._target = None
            self._move_locked(source, target)
            return list(self.items)

    def _move_locked(self, source: int, target: int) -> None:
        items = list(self.items)
        item = items.pop(source)
        items.insert(target, item)
        self.items = items

    def on_drag_start(self, payload: Dict[str, Any]) -> None:
        self.drag_start(payload_int(payload, "index"))

    def on_drag_enter(self, payload: Dict[str, Any]) -> None:
        self.drag_enter(payload_int(payload, "index"))

    def on_drag_end(self, payload: Dict[str, Any]) -> None:
        self.drag_end()

    def on_move(self, payload: Dict[str, Any]) -> None:
        self.move(payload_int(payload, "source"), payload_int(payload, "target"))

    def state(self) -> Dict[str, Any]:
        return {"kind": self.kind, "order": [i.id for i in self.items]}
