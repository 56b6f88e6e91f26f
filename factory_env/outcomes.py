"""Outcome rules for the three machines."""

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from factory_env.layout import SLOT_SIZES

STAR = "star"
BRIGHTNESS = "brightness"

BRIGHTNESS_BY_SIZE = {"extrasmall": 1, "small": 2, "medium": 3, "large": 4}
BRIGHTNESS_LEVELS = (1, 2, 3, 4)

BASE_SLOTS = (0, 1, 2)
HISTORY_LENGTH = 3


@dataclass
class EntropyState:
    """Per-slot memory of the Entropy machine; lives for the whole session."""

    first_round: Dict[int, bool] = field(default_factory=lambda: {slot: True for slot in BASE_SLOTS})
    history: Dict[int, List[str]] = field(default_factory=lambda: {slot: [] for slot in BASE_SLOTS})


class OutcomeGenerator:
    def __init__(self, layout, rng=None):
        self._layout = layout
        self._rng = rng if rng is not None else np.random.default_rng()
        self.entropy = EntropyState()

    def _choice(self, values):
        return values[int(self._rng.integers(len(values)))]

    def produce_outcome(self, machine, slot, kind=STAR):
        """Return the star size (or brightness level) the machine makes for an item dropped in ``slot``."""
        slot = int(slot)
        slot_size = self._layout.slot_size(machine, slot)

        if kind == BRIGHTNESS:
            if machine == "Exploiter":
                return 3
            if machine == "Empowerment":
                return BRIGHTNESS_BY_SIZE[slot_size]
            if machine == "Entropy":
                return self._choice(BRIGHTNESS_LEVELS)
        elif kind == STAR:
            if machine == "Exploiter":
                return "medium"
            if machine == "Empowerment":
                return slot_size
            if machine == "Entropy":
                return self._entropy_star(slot, slot_size)
        else:
            raise ValueError(f"unknown outcome kind {kind!r}")
        raise ValueError(f"unknown machine {machine!r}")

    def _entropy_star(self, slot, slot_size):
        if slot not in BASE_SLOTS:
            # The extra slot carries no first-round flag and no history
            return self._choice(SLOT_SIZES)

        if self.entropy.first_round[slot]:
            size = self._choice([s for s in SLOT_SIZES if s != slot_size])
            self.entropy.first_round[slot] = False
        else:
            size = self._choice(SLOT_SIZES)

        history = self.entropy.history[slot]
        if len(history) == 2:
            # Never three identical outcomes in a row at the same slot
            while size == history[0] and size == history[1]:
                size = self._choice(SLOT_SIZES)
        if len(history) < HISTORY_LENGTH:
            history.append(size)
        return size
