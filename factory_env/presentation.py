"""What the page shows under each machine slot.

Outcomes are computed and logged the moment an item is dropped; showing them
is deferred by a short delay so the drop animation can finish. A deferred
item carries the stamp (phase, round) it was produced under and is discarded
if the stamp has moved on by the time it becomes due.
"""

import datetime
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Item:
    id: int
    machine: str
    slot: int
    kind: str
    value: object


@dataclass(frozen=True)
class _Pending:
    due: datetime.datetime
    stamp: Tuple[str, int]
    item: Item


class OutcomeBoard:
    def __init__(self):
        self._visible = {}
        self._pending = []
        self.dropped_stale = 0

    def schedule(self, item, stamp, delay_ms=0, now=None):
        now = now or datetime.datetime.now()
        due = now + datetime.timedelta(milliseconds=delay_ms)
        self._pending.append(_Pending(due=due, stamp=tuple(stamp), item=item))

    @property
    def has_pending(self):
        return bool(self._pending)

    def next_due(self):
        if not self._pending:
            return None
        return min(p.due for p in self._pending)

    def flush(self, current_stamp, now=None):
        """Show every due item still belonging to ``current_stamp``; return the ones shown."""
        now = now or datetime.datetime.now()
        current_stamp = tuple(current_stamp)
        shown, waiting = [], []
        for pending in self._pending:
            if pending.stamp != current_stamp:
                self.dropped_stale += 1
                print(f"🗑️ Dropped stale outcome {pending.item.kind} from {pending.stamp}")
                continue
            if pending.due <= now:
                self._visible.setdefault((pending.item.machine, pending.item.slot), []).append(pending.item)
                shown.append(pending.item)
            else:
                waiting.append(pending)
        self._pending = waiting
        return shown

    def items_at(self, machine, slot):
        return list(self._visible.get((machine, slot), []))

    def visible_items(self):
        return [item for items in self._visible.values() for item in items]

    def clear(self, items):
        doomed = {item.id for item in items}
        for key in list(self._visible):
            self._visible[key] = [item for item in self._visible[key] if item.id not in doomed]
        self._pending = [p for p in self._pending if p.item.id not in doomed]

    def clear_all(self):
        self._visible.clear()
        self._pending.clear()
