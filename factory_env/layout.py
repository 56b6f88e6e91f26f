"""Per-participant layout of machines, colors and slot sizes."""

from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np

MACHINES = ("Exploiter", "Empowerment", "Entropy")
COLORS = ("blue", "green", "purple")
SLOT_SIZES = ("small", "medium", "large")
EXTRA_SLOT_SIZE = "extrasmall"
EXTRA_SLOT_INDEX = 3

# Orderings a participant may be assigned under the "sample" policy
PERMITTED_SLOT_ORDERS = (
    ("small", "large", "medium"),
    ("large", "small", "medium"),
    ("medium", "small", "large"),
    ("medium", "large", "small"),
)
FIXED_SLOT_ORDER = ("large", "medium", "small")


class LayoutError(RuntimeError):
    """Raised when the session layout would be regenerated or read before it exists."""


def size_code(size):
    """Single-letter export code for a size tag; brightness levels pass through as text."""
    if isinstance(size, (int, np.integer)):
        return str(int(size))
    if size == EXTRA_SLOT_SIZE:
        return "E"
    return size[0].upper() if size else ""


@dataclass(frozen=True)
class SessionLayout:
    machine_order: Tuple[str, str, str]
    color_order: Tuple[str, str, str]
    slot_order: Tuple[str, str, str]
    extra_slot: bool = False

    @property
    def num_slots(self):
        return 4 if self.extra_slot else 3

    def slot_size(self, slot):
        if slot == EXTRA_SLOT_INDEX and self.extra_slot:
            return EXTRA_SLOT_SIZE
        if 0 <= slot < 3:
            return self.slot_order[slot]
        raise IndexError(f"slot {slot} does not exist in this layout")

    def color_of(self, machine):
        return self.color_order[self.machine_order.index(machine)]

    # Serialisation used in every trial record; the extra slot never appears here.
    def machine_order_text(self):
        return ", ".join(self.machine_order)

    def slot_layout_text(self):
        return "".join(size_code(size) for size in self.slot_order)

    def color_order_text(self):
        return ", ".join(color.capitalize() for color in self.color_order)


class LayoutRandomizer:
    """Draws the session layout once and keeps the slot size map derived from it."""

    def __init__(self, rng=None, slot_order_policy="fixed"):
        if slot_order_policy not in ("fixed", "sample"):
            raise ValueError(f"unknown slot order policy {slot_order_policy!r}")
        self._rng = rng if rng is not None else np.random.default_rng()
        self.slot_order_policy = slot_order_policy
        self._layout = None
        self.slot_size_map = {}

    @property
    def layout(self):
        if self._layout is None:
            raise LayoutError("layout has not been generated yet")
        return self._layout

    @property
    def generated(self):
        return self._layout is not None

    def _permute(self, values):
        return tuple(values[int(i)] for i in self._rng.permutation(len(values)))

    def generate_layout(self):
        if self._layout is not None:
            raise LayoutError("layout already generated for this session")

        if self.slot_order_policy == "sample":
            slot_order = PERMITTED_SLOT_ORDERS[int(self._rng.integers(len(PERMITTED_SLOT_ORDERS)))]
        else:
            slot_order = FIXED_SLOT_ORDER

        self._layout = SessionLayout(
            machine_order=self._permute(MACHINES),
            color_order=self._permute(COLORS),
            slot_order=tuple(slot_order),
        )
        self._write_slot_size_map()
        print(f"🎲 Layout: machines={self._layout.machine_order_text()} "
              f"colors={self._layout.color_order_text()} slots={self._layout.slot_layout_text()}")
        return self._layout

    def adopt_layout(self, layout):
        """Use a layout drawn elsewhere (e.g. replaying a participant's session) instead of generating one."""
        if self._layout is not None:
            raise LayoutError("layout already generated for this session")
        self._layout = layout
        self._write_slot_size_map()
        return layout

    def set_extra_slot(self, enabled):
        """Add or remove the extra-small fourth slot, keeping the original three-slot assignment."""
        layout = self.layout
        if layout.extra_slot != enabled:
            self._layout = replace(layout, extra_slot=enabled)
            self._write_slot_size_map()
        return self._layout

    def _write_slot_size_map(self):
        layout = self._layout
        self.slot_size_map = {
            machine: {slot: layout.slot_size(slot) for slot in range(layout.num_slots)}
            for machine in layout.machine_order
        }

    def slot_size(self, machine, slot):
        try:
            return self.slot_size_map[machine][slot]
        except KeyError:
            raise IndexError(f"no slot {slot} on machine {machine!r}") from None
