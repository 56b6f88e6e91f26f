#!/usr/bin/env python3
"""
Walk sessions through the phase engine the way the page drives it
"""

import datetime

import pytest

from factory_env import ExperimentConfig, ExperimentSession, ParticipantProfile
from factory_env.narration import NarrationPlayer
from factory_env.phases import PHASES, QUESTION_BUDGETS
from factory_env.presentation import Item, OutcomeBoard
from factory_env.trial_log import ReactionClock


class FakeNow:
    """Clock that moves forward 250 ms every time it is read."""

    def __init__(self):
        self.t = datetime.datetime(2026, 1, 1, 9, 0, 0)

    def __call__(self):
        self.t += datetime.timedelta(milliseconds=250)
        return self.t


def make_session(**config):
    config.setdefault("seed", 11)
    config.setdefault("outcome_delay_ms", 0)
    profile = ParticipantProfile(id="p1", age=9, sex="M")
    return ExperimentSession(profile, ExperimentConfig(**config), clock=ReactionClock(FakeNow()))


def cont(session):
    session.controller.narration_done()
    assert session.controller.advance()


def run_demo(session):
    controller = session.controller
    controller.start()
    for _ in controller.demo_script():
        controller.narration_done()
        assert controller.demo_ready
        controller.run_demo_step()


def to_extrasmall(session):
    run_demo(session)
    cont(session)
    while session.state.phase == "comprehension":
        session.controller.click_machine(session.state.displayed_grouping)
        cont(session)


def to_question(session):
    to_extrasmall(session)
    session.controller.click_machine(session.layout.layout.machine_order[0])
    cont(session)
    session.controller.drop(session.layout.layout.machine_order[0], 3)
    cont(session)


def any_machine(session):
    return session.layout.layout.machine_order[0]


def test_demo_runs_full_script():
    session = make_session()
    controller = session.controller
    assert not controller.demo_ready  # not started yet
    controller.start()
    assert not controller.demo_ready  # introduction narration still playing
    assert controller.run_demo_step() is None
    steps = 0
    while True:
        controller.narration_done()
        if not controller.demo_ready:
            break
        controller.run_demo_step()
        steps += 1
        # Next scripted drop waits for this outcome's narration
        assert not controller.demo_ready
    assert steps == 27
    assert len(session.records) == 27
    assert all(r.phase == "Demo" and r.trial == "" and r.reaction_time_ms == 0 for r in session.records)
    order = session.layout.layout.machine_order
    assert [r.machine for r in session.records[:9]] == [order[0]] * 9
    assert session.state.awaiting_continue and session.state.exit_available
    assert session.cues[0].tag == "introduction"
    assert session.cues[-1].tag == "finish"


def test_continue_waits_for_narration():
    session = make_session()
    run_demo(session)
    assert session.state.narration_pending
    assert not session.controller.advance()
    assert session.state.phase == "demo"
    cont(session)
    assert session.state.phase == "comprehension"


def test_comprehension_scores_against_layout():
    session = make_session()
    run_demo(session)
    cont(session)
    state = session.state
    assert state.groupings == list(session.layout.layout.machine_order)

    right = state.displayed_grouping
    wrong = next(m for m in state.groupings if m != right)
    session.controller.click_machine(wrong)
    # A second click before continue is ignored
    assert session.controller.click_machine(right) is None
    cont(session)
    session.controller.click_machine(state.displayed_grouping)

    choices = [r for r in session.records if r.phase == "Comprehension"]
    assert [c.correct_machine for c in choices] == ["Incorrect", "Correct"]
    assert choices[0].trial == "Remember the stars that you made from the machines? Which machine made these stars?"
    assert choices[0].reaction_time_ms == 250


def test_comprehension_hides_machine_stars_until_answered():
    session = make_session()
    run_demo(session)
    session.board.flush(session.state.stamp)
    cont(session)
    state = session.state
    order = session.layout.layout.machine_order

    assert len(session.board.items_at(order[0], 0)) == 3
    assert state.displayed_grouping == order[0]
    assert all(state.hides_outcomes(machine) for machine in order)

    session.controller.click_machine(order[1])
    assert not state.hides_outcomes(order[0])
    assert state.hides_outcomes(order[1]) and state.hides_outcomes(order[2])

    cont(session)
    session.controller.click_machine(order[1])
    cont(session)
    session.controller.click_machine(order[2])
    cont(session)
    assert state.phase == "extrasmall"
    assert not any(state.hides_outcomes(machine) for machine in order)


def test_narration_clip_holds_demo_and_continue(tmp_path):
    for name in ("demo-instructions.mp3", "demo-finish.mp3", "demo-smaller.mp3", "demo-same.mp3", "demo-bigger.mp3"):
        (tmp_path / name).write_bytes(b"ID3")
    session = make_session()
    session.narration = NarrationPlayer(str(tmp_path), duration=lambda path: 4.0)
    controller = session.controller
    clip = datetime.timedelta(seconds=4)
    now = datetime.datetime(2026, 1, 1, 10, 0, 0)

    controller.start()
    assert session.play_narration(now=now) == 4.0
    assert session.narration.current_path.endswith("demo-instructions.mp3")
    assert session.play_narration(now=now + datetime.timedelta(seconds=3)) == 1.0
    assert not controller.demo_ready
    now += clip
    assert session.play_narration(now=now) is None
    assert controller.demo_ready

    while controller.demo_ready:
        controller.run_demo_step()
        assert session.play_narration(now=now) == 4.0
        assert not controller.demo_ready
        now += clip
        session.play_narration(now=now)

    # The outcome clip of the last drop has ended, the finish clip is playing
    assert session.narration.current_path.endswith("demo-finish.mp3")
    assert not controller.advance()
    now += clip
    assert session.play_narration(now=now) is None
    assert controller.advance()
    assert session.state.phase == "comprehension"


def test_comprehension_skipped_without_demo_outcomes():
    session = make_session()
    session.controller.start()
    session.controller.narration_done()
    session.state.step = "finished"
    session.state.awaiting_continue = True
    cont(session)
    assert session.state.phase == "extrasmall"
    assert session.state.groupings == []


def test_extrasmall_has_two_steps():
    session = make_session()
    to_extrasmall(session)
    state = session.state
    assert state.phase == "extrasmall" and state.step == "slot_choice"
    assert not state.accepts_drops

    record = session.controller.click_machine(any_machine(session))
    assert record.correct_machine == ""
    assert state.awaiting_explanation and state.awaiting_continue
    session.controller.submit_explanation("the big one")
    cont(session)

    assert state.phase == "extrasmall" and state.step == "small_star"
    assert session.layout.layout.extra_slot
    assert state.remaining == 1
    item = session.controller.drop(any_machine(session), 3)
    assert item.kind == "star"
    assert session.records[-1].slot_size == "E"
    assert session.records[-1].trial == 1
    assert session.controller.drop(any_machine(session), 3) is None
    cont(session)
    assert state.phase == "question"


def test_question_round_reveals_prompt_instead_of_advancing():
    session = make_session()
    to_question(session)
    state = session.state
    assert state.remaining == QUESTION_BUDGETS[0] == 2
    session.controller.drop(any_machine(session), 0)
    assert not state.awaiting_explanation
    session.controller.drop(any_machine(session), 1)
    assert state.remaining == 0
    assert state.awaiting_explanation and state.awaiting_continue
    assert state.phase == "question"
    assert session.controller.drop(any_machine(session), 2) is None


def test_question_rounds_clear_items_and_count_trials():
    session = make_session(outcome_delay_ms=700)
    to_question(session)
    state = session.state
    machine = any_machine(session)
    for budget in QUESTION_BUDGETS:
        assert state.phase == "question"
        assert state.remaining == budget
        for _ in range(budget):
            session.controller.drop(machine, 0)
        assert session.board.has_pending
        cont(session)
        assert not any(i.kind == "hat" for i in session.board.visible_items())
    assert state.phase == "lightness"
    hats = [r for r in session.records if r.phase == "Question"]
    assert [r.trial for r in hats] == list(range(1, 12))


def test_lightness_and_verbal_questions():
    session = make_session()
    to_question(session)
    machine = any_machine(session)
    for budget in QUESTION_BUDGETS:
        for _ in range(budget):
            session.controller.drop(machine, 0)
        cont(session)

    state = session.state
    expected = [(2, 3, None), (1, 1, 4), (1, 4, 1)]
    for budget, start, target in expected:
        assert state.phase == "lightness"
        assert (state.remaining, state.start_brightness, state.target_brightness) == (budget, start, target)
        for _ in range(budget):
            item = session.controller.drop("Exploiter", 1)
            assert item.kind == "lightbulb" and item.value == 3
        cont(session)

    bulbs = [r for r in session.records if r.phase == "Lightness"]
    assert [r.star_type for r in bulbs] == ["3", "3", "3", "3"]

    assert state.phase == "verbalquestion"
    first_question = state.current_question
    session.controller.click_machine("Entropy")
    session.controller.submit_explanation("   ")
    cont(session)
    session.controller.click_machine("Exploiter")
    verbal = [r for r in session.records if r.phase == "Verbalquestion"]
    assert verbal[0].trial == first_question
    assert verbal[1].trial != first_question
    assert all(r.correct_machine == "" for r in verbal)
    cont(session)
    assert state.phase == "exploration"


def play_to_exploration(session):
    to_question(session)
    machine = any_machine(session)
    for budget in QUESTION_BUDGETS:
        for _ in range(budget):
            session.controller.drop(machine, 0)
        cont(session)
    for budget in (2, 1, 1):
        for _ in range(budget):
            session.controller.drop(machine, 0)
        cont(session)
    for _ in range(2):
        session.controller.click_machine(machine)
        cont(session)


def test_full_session_moves_forward_only():
    session = make_session()
    seen = []

    def note():
        if not seen or seen[-1] != session.state.phase:
            seen.append(session.state.phase)

    original_enter = session.controller._enter

    def tracking_enter(phase):
        original_enter(phase)
        note()

    session.controller._enter = tracking_enter
    note()
    play_to_exploration(session)
    state = session.state
    assert state.phase == "exploration"
    assert state.remaining == 2
    assert session.board.visible_items() == []

    session.controller.drop("Entropy", 3)
    session.controller.drop("Entropy", 0)
    assert state.step == "debrief"
    session.controller.submit_explanation("I liked the purple one")
    cont(session)

    assert state.phase == "terminal"
    assert seen == list(PHASES)
    assert session.payload is not None
    with pytest.raises(RuntimeError):
        session.controller._enter("question")


def test_exploration_can_end_early():
    session = make_session()
    play_to_exploration(session)
    session.controller.drop("Exploiter", 0)
    assert session.controller.finish()
    assert session.state.step == "debrief"
    assert session.state.remaining == 0
    assert session.controller.drop("Exploiter", 0) is None
    cont(session)
    assert session.finished
    assert session.payload["data"][-1][6] == "Exploration"


def test_verbal_questions_end_session_when_exploration_disabled():
    session = make_session(include_exploration=False)
    play_to_exploration(session)
    assert session.state.phase == "terminal"
    assert session.payload is not None


def test_exit_after_demo_ends_session():
    session = make_session()
    assert not session.controller.finish()
    run_demo(session)
    assert session.controller.finish()
    assert session.finished
    assert len(session.payload["data"]) == 28


def test_layout_fields_constant_in_every_record():
    session = make_session(slot_order_policy="sample")
    play_to_exploration(session)
    layout = session.layout.layout
    expected = (layout.machine_order_text(), layout.slot_layout_text(), layout.color_order_text())
    assert len(session.records) == 49
    for record in session.records:
        assert (record.machine_order, record.slot_layout, record.color_order) == expected


def test_reaction_time_resets_on_continue():
    session = make_session()
    to_question(session)
    # Clock is read once at continue and once per drop, 250 ms apart
    session.controller.drop(any_machine(session), 0)
    session.controller.drop(any_machine(session), 0)
    assert [r.reaction_time_ms for r in session.records[-2:]] == [250, 250]


def test_broken_board_does_not_corrupt_counters():
    class BrokenBoard(OutcomeBoard):
        def schedule(self, *args, **kwargs):
            raise RuntimeError("no outcome element")

    session = make_session()
    to_question(session)
    session.controller.board = BrokenBoard()
    session.controller.drop(any_machine(session), 0)
    assert session.state.remaining == 1
    assert session.state.trial_counters["question"] == 1
    assert session.records[-1].phase == "Question"


def test_failing_narration_does_not_block_continue():
    session = make_session()

    def broken(cue):
        raise FileNotFoundError("audio/demo-finish.mp3")

    session.controller.on_cue = broken
    run_demo(session)
    assert not session.state.narration_pending
    assert session.controller.advance()


def test_stale_outcomes_are_dropped():
    board = OutcomeBoard()
    now = datetime.datetime(2026, 1, 1)
    fresh = Item(1, "Entropy", 0, "hat", "large")
    stale = Item(2, "Entropy", 1, "hat", "small")
    board.schedule(stale, ("question", 3), 700, now=now)
    board.schedule(fresh, ("question", 4), 700, now=now)

    assert board.flush(("question", 4), now=now) == []
    assert board.dropped_stale == 1
    shown = board.flush(("question", 4), now=now + datetime.timedelta(milliseconds=700))
    assert shown == [fresh]
    assert board.items_at("Entropy", 0) == [fresh]
    assert board.items_at("Entropy", 1) == []
    board.clear([fresh])
    assert board.visible_items() == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
