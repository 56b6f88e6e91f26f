"""Append-only log of every drop, machine choice and explanation."""

import datetime
from dataclasses import dataclass
from typing import Union

from factory_env.layout import size_code

Cell = Union[str, int]


class ReactionClock:
    """Milliseconds since the last mark; reading it re-marks."""

    def __init__(self, now=None):
        self._now = now or datetime.datetime.now
        self._last = self._now()

    def mark(self):
        self._last = self._now()

    def lap(self):
        now = self._now()
        elapsed = int(round((now - self._last).total_seconds() * 1000))
        self._last = now
        return elapsed


@dataclass(frozen=True)
class TrialRecord:
    prolific_id: str
    age: str
    sex: str
    machine_order: str
    slot_layout: str
    color_order: str
    phase: str
    trial: Cell = ""
    machine: str = ""
    slot_size: str = ""
    star_type: str = ""
    reaction_time_ms: Cell = ""
    correct_machine: str = ""
    explanation: str = ""

    @property
    def is_explanation_only(self):
        return bool(self.explanation.strip()) and not self.machine and not self.star_type

    def as_row(self):
        return [
            self.prolific_id, self.age, self.sex, self.machine_order,
            self.slot_layout, self.color_order, self.phase, self.trial,
            self.machine, self.slot_size, self.star_type,
            self.reaction_time_ms, self.correct_machine, self.explanation,
        ]


class TrialLogger:
    """Builds one TrialRecord per call from the profile, the frozen layout and the live phase state."""

    def __init__(self, profile, layout, phase_state, clock=None):
        self._profile = profile
        self._layout = layout
        self._state = phase_state
        self.clock = clock or ReactionClock()
        self.records = []

    def _base(self, **fields):
        layout = self._layout.layout
        phase = self._state.phase
        return TrialRecord(
            prolific_id=self._profile.id,
            age=str(self._profile.age),
            sex=self._profile.sex,
            machine_order=layout.machine_order_text(),
            slot_layout=layout.slot_layout_text(),
            color_order=layout.color_order_text(),
            phase=phase.capitalize(),
            **fields,
        )

    def _append(self, record):
        self.records.append(record)
        return record

    def _reaction_time(self):
        # Scripted demo drops carry no participant reaction time
        if self._state.phase == "demo":
            return 0
        return self.clock.lap()

    def record_interaction(self, machine, slot_size_tag, outcome):
        return self._append(self._base(
            trial=self._state.trial_counters.get(self._state.phase, ""),
            machine=machine,
            slot_size=size_code(slot_size_tag),
            star_type=size_code(outcome),
            reaction_time_ms=self._reaction_time(),
        ))

    def record_choice(self, machine, correctness=""):
        return self._append(self._base(
            trial=self._state.current_question or "No more questions",
            machine=machine,
            reaction_time_ms=self._reaction_time(),
            correct_machine=correctness,
        ))

    def record_explanation(self, text):
        return self._append(self._base(explanation=text))
