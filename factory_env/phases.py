"""Phase state machine for one experiment session.

Phases only ever move forward through ``PHASES``. Every method that reacts
to participant input returns quietly (``None``/``False``) when the input is
not expected in the current state, so a stray click from the page can never
move a counter.
"""

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from factory_env import prompts
from factory_env.layout import LayoutError
from factory_env.narration import NarrationCue
from factory_env.outcomes import BRIGHTNESS, STAR
from factory_env.presentation import Item

PHASES = (
    "demo",
    "comprehension",
    "extrasmall",
    "question",
    "lightness",
    "verbalquestion",
    "exploration",
    "terminal",
)

# Forward transition table; guards live in PhaseController._next_phase
TRANSITIONS = {
    "demo": "comprehension",
    "comprehension": "extrasmall",
    "extrasmall": "question",
    "question": "lightness",
    "lightness": "verbalquestion",
    "verbalquestion": "exploration",
    "exploration": "terminal",
}

DROPS_PER_DEMO_SLOT = 3
QUESTION_BUDGETS = (2, 3, 3, 3)
LIGHTNESS_BUDGETS = (2, 1, 1)
# (bulb handed to the child, highlighted target) for each lightbulb round
LIGHTNESS_BULBS = ((3, None), (1, 4), (4, 1))
EXPLORATION_BUDGET = 2

ITEM_KINDS = {
    "demo": "star",
    "extrasmall": "star",
    "question": "hat",
    "lightness": "lightbulb",
    "exploration": "mushroom",
}
# Phases whose drops are collected and cleared between rounds
CLEARED_PHASES = ("question", "lightness")

# Sub-states
RUNNING, FINISHED = "running", "finished"
SLOT_CHOICE, SMALL_STAR = "slot_choice", "small_star"
PLAY, DEBRIEF = "play", "debrief"


@dataclass
class PhaseState:
    phase: str = "demo"
    step: str = RUNNING
    epoch: int = 0
    remaining: int = 0
    trial_counters: Dict[str, int] = field(default_factory=dict)
    demo_index: int = 0
    demo_outcomes: Dict[str, Dict[int, List[str]]] = field(default_factory=dict)
    groupings: List[str] = field(default_factory=list)
    comprehension_index: int = 0
    question_index: int = 0
    lightbulb_index: int = 0
    items_pending_clear: List[Item] = field(default_factory=list)
    instruction: str = prompts.DEMO_INSTRUCTIONS
    current_question: str = ""
    machines_clickable: bool = False
    awaiting_explanation: bool = False
    awaiting_continue: bool = False
    exit_available: bool = False
    narration_pending: bool = False
    start_brightness: Optional[int] = None
    target_brightness: Optional[int] = None
    explanation_prompt: str = prompts.WHY_PROMPT

    @property
    def stamp(self):
        return (self.phase, self.epoch)

    @property
    def item_kind(self):
        return ITEM_KINDS.get(self.phase)

    @property
    def displayed_grouping(self):
        if self.phase == "comprehension" and self.comprehension_index < len(self.groupings):
            return self.groupings[self.comprehension_index]
        return None

    @property
    def accepts_drops(self):
        if self.remaining <= 0:
            return False
        if self.phase == "extrasmall":
            return self.step == SMALL_STAR
        if self.phase == "exploration":
            return self.step == PLAY
        return self.phase in ("question", "lightness")

    def hides_outcomes(self, machine):
        """Under comprehension a machine's own stars stay hidden until the question about them is answered."""
        if self.phase != "comprehension":
            return False
        return machine not in self.groupings[:self.comprehension_index]


class PhaseController:
    def __init__(self, state, layout, generator, logger, board=None, include_exploration=True,
                 outcome_delay_ms=700, on_cue=None, on_terminal=None):
        self.state = state
        self.layout = layout
        self.generator = generator
        self.logger = logger
        self.board = board
        self.include_exploration = include_exploration
        self.outcome_delay_ms = outcome_delay_ms
        self.on_cue = on_cue
        self.on_terminal = on_terminal
        self._item_ids = itertools.count(1)
        self.started = False

    # ----- collaborators -----

    def _notify(self, what, fn, *args):
        """Call a presentation/audio collaborator; failures are reported and never touch the counters."""
        if fn is None:
            return False
        try:
            fn(*args)
            return True
        except Exception as e:
            print(f"⚠️ {what} failed: {e}")
            return False

    def _cue(self, tag=None, index=None):
        if self.on_cue is None:
            return
        cue = NarrationCue(phase=self.state.phase, tag=tag, index=index)
        self.state.narration_pending = True
        if not self._notify("Narration", self.on_cue, cue):
            self.state.narration_pending = False

    def narration_done(self):
        self.state.narration_pending = False

    # ----- transitions -----

    def _next_phase(self, phase):
        nxt = TRANSITIONS[phase]
        if nxt == "exploration" and not self.include_exploration:
            return "terminal"
        return nxt

    def _enter(self, phase):
        state = self.state
        if PHASES.index(phase) <= PHASES.index(state.phase):
            raise RuntimeError(f"phase can only move forward: {state.phase} -> {phase}")
        print(f"➡️ Phase {state.phase} -> {phase}")
        state.phase = phase
        state.epoch += 1
        state.machines_clickable = False
        state.awaiting_explanation = False
        state.awaiting_continue = False
        state.remaining = 0
        state.explanation_prompt = prompts.WHY_PROMPT
        getattr(self, f"_start_{phase}")()

    def _advance_phase(self):
        self._enter(self._next_phase(self.state.phase))

    def _new_round(self):
        state = self.state
        if state.items_pending_clear:
            self._notify("Clearing outcomes", getattr(self.board, "clear", None), list(state.items_pending_clear))
            state.items_pending_clear = []
        state.epoch += 1

    def _exhausted(self):
        self.state.awaiting_explanation = True
        self.state.awaiting_continue = True

    # ----- demo -----

    def start(self):
        """Begin the session: the introduction narration plays before the demo runs."""
        if self.started:
            return
        if not self.layout.generated:
            raise LayoutError("generate the session layout before starting the demo")
        self.started = True
        self._cue("introduction")

    def demo_script(self):
        layout = self.layout.layout
        return [
            (machine, slot)
            for machine in layout.machine_order
            for slot in range(3)
            for _ in range(DROPS_PER_DEMO_SLOT)
        ]

    @property
    def demo_ready(self):
        state = self.state
        # Each scripted drop waits for the previous clip (the introduction first)
        return (
            state.phase == "demo" and state.step == RUNNING and self.started
            and not state.narration_pending
        )

    def run_demo_step(self):
        """Perform the next scripted demo drop."""
        state = self.state
        if state.phase != "demo" or state.step != RUNNING or state.narration_pending:
            return None
        script = self.demo_script()
        machine, slot = script[state.demo_index]
        state.demo_index += 1
        item = self._produce(machine, slot)
        state.demo_outcomes.setdefault(machine, {}).setdefault(slot, []).append(item.value)
        self._cue(item.value)
        if state.demo_index == len(script):
            state.step = FINISHED
            state.awaiting_continue = True
            state.exit_available = True
            self._cue("finish")
        return item

    def _produce(self, machine, slot):
        state = self.state
        kind = BRIGHTNESS if state.phase == "lightness" else STAR
        if state.phase in ITEM_KINDS and state.phase != "demo":
            state.trial_counters[state.phase] = state.trial_counters.get(state.phase, 0) + 1
        outcome = self.generator.produce_outcome(machine, slot, kind)
        self.logger.record_interaction(machine, self.layout.slot_size(machine, slot), outcome)
        item = Item(id=next(self._item_ids), machine=machine, slot=slot, kind=state.item_kind, value=outcome)
        if state.phase in CLEARED_PHASES:
            state.items_pending_clear.append(item)
        self._notify("Scheduling outcome", getattr(self.board, "schedule", None), item, state.stamp, self.outcome_delay_ms)
        return item

    # ----- comprehension -----

    def _start_comprehension(self):
        state = self.state
        state.groupings = [m for m in self.layout.layout.machine_order if state.demo_outcomes.get(m)]
        state.comprehension_index = 0
        state.instruction = prompts.COMPREHENSION_QUESTION
        state.current_question = prompts.COMPREHENSION_QUESTION
        self._show_grouping()

    def _show_grouping(self):
        state = self.state
        if state.comprehension_index >= len(state.groupings):
            self._advance_phase()
            return
        state.machines_clickable = True
        self._cue(index=state.comprehension_index)

    # ----- extrasmall -----

    def _start_extrasmall(self):
        state = self.state
        state.step = SLOT_CHOICE
        state.instruction = prompts.EXTRA_SMALL_QUESTION
        state.current_question = prompts.EXTRA_SMALL_QUESTION
        state.machines_clickable = True
        self._cue()

    def _start_small_star(self):
        state = self.state
        state.step = SMALL_STAR
        state.epoch += 1
        self.layout.set_extra_slot(True)
        state.remaining = 1
        state.instruction = prompts.SMALL_EXPERIMENT_QUESTION
        self._cue("smallExperiment")

    # ----- question -----

    def _start_question(self):
        self.state.step = RUNNING
        self.state.question_index = 0
        self._start_question_round()

    def _start_question_round(self):
        state = self.state
        self._new_round()
        state.remaining = QUESTION_BUDGETS[state.question_index]
        state.instruction = prompts.QUESTIONS[state.question_index]
        self._cue(index=state.question_index)
        state.question_index += 1

    # ----- lightness -----

    def _start_lightness(self):
        self.state.step = RUNNING
        self.state.lightbulb_index = 0
        self._start_lightness_round()

    def _start_lightness_round(self):
        state = self.state
        self._new_round()
        index = state.lightbulb_index
        state.remaining = LIGHTNESS_BUDGETS[index]
        state.start_brightness, state.target_brightness = LIGHTNESS_BULBS[index]
        state.instruction = f"Round {index + 1}/{len(LIGHTNESS_BUDGETS)}: {prompts.LIGHTBULB_QUESTIONS[index]}"
        self._cue(index=index)
        state.lightbulb_index += 1

    # ----- verbal questions -----

    def _start_verbalquestion(self):
        self._new_round()
        self.state.step = RUNNING
        self.state.question_index = prompts.HAT_ROUNDS
        self._show_verbal_question()

    def _show_verbal_question(self):
        state = self.state
        state.instruction = prompts.QUESTIONS[state.question_index]
        state.current_question = prompts.QUESTIONS[state.question_index]
        state.machines_clickable = True
        self._cue(index=state.question_index)

    # ----- exploration / end -----

    def _start_exploration(self):
        state = self.state
        self._notify("Clearing board", getattr(self.board, "clear_all", None))
        state.step = PLAY
        state.exit_available = False
        state.remaining = EXPLORATION_BUDGET
        state.instruction = prompts.EXPLORATION_INSTRUCTIONS
        self._cue()

    def _start_terminal(self):
        state = self.state
        state.step = FINISHED
        state.exit_available = False
        state.instruction = ""
        self._notify("Export", self.on_terminal)

    # ----- participant input -----

    def drop(self, machine, slot):
        """An item dropped by the child into ``slot`` of ``machine``."""
        state = self.state
        if not state.accepts_drops:
            return None
        if machine not in self.layout.layout.machine_order:
            return None
        if not 0 <= int(slot) < self.layout.layout.num_slots:
            return None
        state.remaining -= 1
        item = self._produce(machine, int(slot))
        if state.remaining == 0:
            self._exhausted()
            if state.phase == "exploration":
                self._start_debrief()
        return item

    def click_machine(self, machine):
        """A machine chosen as the answer to the question on screen."""
        state = self.state
        if not state.machines_clickable or machine not in self.layout.layout.machine_order:
            return None
        state.machines_clickable = False
        if state.phase == "comprehension":
            expected = state.groupings[state.comprehension_index]
            correctness = "Correct" if machine == expected else "Incorrect"
            record = self.logger.record_choice(machine, correctness)
            state.comprehension_index += 1
            state.awaiting_continue = True
        elif state.phase in ("extrasmall", "verbalquestion"):
            record = self.logger.record_choice(machine)
            if state.phase == "verbalquestion":
                state.question_index += 1
            self._exhausted()
        else:
            return None
        return record

    def submit_explanation(self, text):
        state = self.state
        if not state.awaiting_explanation:
            return None
        state.awaiting_explanation = False
        if not text or not text.strip():
            return None
        return self.logger.record_explanation(text.strip())

    def advance(self):
        """The continue button."""
        state = self.state
        if state.narration_pending or not state.awaiting_continue:
            return False
        state.awaiting_continue = False
        state.awaiting_explanation = False
        self.logger.clock.mark()

        phase = state.phase
        if phase == "demo":
            self._advance_phase()
        elif phase == "comprehension":
            self._show_grouping()
        elif phase == "extrasmall":
            if state.step == SLOT_CHOICE:
                self._start_small_star()
            else:
                self._advance_phase()
        elif phase == "question":
            if state.question_index < len(QUESTION_BUDGETS):
                self._start_question_round()
            else:
                self._new_round()
                self._advance_phase()
        elif phase == "lightness":
            if state.lightbulb_index < len(LIGHTNESS_BUDGETS):
                self._start_lightness_round()
            else:
                self._new_round()
                self._advance_phase()
        elif phase == "verbalquestion":
            if state.question_index < len(prompts.QUESTIONS):
                self._show_verbal_question()
            else:
                self._advance_phase()
        elif phase == "exploration":
            self._advance_phase()
        return True

    def _start_debrief(self):
        state = self.state
        state.step = DEBRIEF
        state.remaining = 0
        state.explanation_prompt = prompts.DEBRIEF_PROMPT
        self._exhausted()

    def finish(self):
        """Operator's exit / "Finish Playing" button."""
        state = self.state
        if state.phase == "exploration":
            if state.step == PLAY:
                self._start_debrief()
            else:
                self._advance_phase()
            return True
        if state.phase == "terminal":
            # Same action re-requests the export after a failed upload
            self._notify("Export", self.on_terminal)
            return True
        if not state.exit_available:
            return False
        self._enter("terminal")
        return True
