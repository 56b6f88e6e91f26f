import time
import datetime

import streamlit as st

# Guard print against BrokenPipeError in Streamlit teardown
import builtins as _builtins

def _safe_print(*args, **kwargs):
    try:
        _builtins.print(*args, **kwargs)
    except BrokenPipeError:
        pass
    except Exception:
        pass

print = _safe_print

from factory_env import prompts

STAR_FONT_SIZES = {"extrasmall": 14, "small": 22, "medium": 32, "large": 44}
BRIGHTNESS_OPACITY = {1: 0.25, 2: 0.5, 3: 0.75, 4: 1.0}
ITEM_GLYPHS = {"star": "★", "hat": "🎩", "mushroom": "🍄", "lightbulb": "💡"}
COLOR_HEX = {"blue": "#1e88e5", "green": "#43a047", "purple": "#8e24aa"}


def item_html(kind, value):
    """HTML span for one outcome item"""
    glyph = ITEM_GLYPHS.get(kind, "★")
    if kind == "lightbulb":
        opacity = BRIGHTNESS_OPACITY.get(value, 1.0)
        return f"<span style='font-size: 30px; opacity: {opacity};'>{glyph}</span>"
    size = STAR_FONT_SIZES.get(value, 32)
    color = "#f9a825" if kind == "star" else "#333"
    return f"<span style='font-size: {size}px; color: {color}; margin: 0 2px;'>{glyph}</span>"


def play_narration(session):
    """Keep the current narration clip on the page; returns seconds until it ends (None when silent)."""
    wait = session.play_narration()
    path = session.narration.current_path
    if path:
        try:
            st.audio(path, format="audio/mp3", autoplay=True)
        except Exception as e:
            print(f"⚠️ Could not play {path}: {e}")
    return wait


def flush_outcomes(session):
    """Reveal outcomes whose drop delay has passed; returns seconds until the next one is due."""
    board = session.board
    board.flush(session.state.stamp)
    next_due = board.next_due()
    if next_due is None:
        return None
    return max(0.0, (next_due - datetime.datetime.now()).total_seconds())


def render_reference(session):
    """Phase-specific picture above the machines."""
    state = session.state
    if state.phase == "comprehension" and state.displayed_grouping:
        machine = state.displayed_grouping
        cells = []
        for slot in range(3):
            items = "".join(item_html(i.kind, i.value) for i in session.board.items_at(machine, slot))
            cells.append(f"<div style='min-width: 120px; text-align: center;'>{items}</div>")
        st.markdown(
            f"<div style='display: flex; justify-content: center; gap: 12px; margin: 20px 0;'>{''.join(cells)}</div>",
            unsafe_allow_html=True,
        )
    elif state.phase == "extrasmall" and state.step == "slot_choice":
        st.markdown(
            "<div style='text-align: center; margin: 12px 0;'>"
            "<span style='display: inline-block; width: 18px; height: 18px; border-radius: 4px; "
            "background: #ffca28; border: 2px solid #555;'></span></div>",
            unsafe_allow_html=True,
        )
    elif state.phase == "extrasmall" and state.step == "small_star":
        st.markdown(
            f"<div style='text-align: center;'>{item_html('star', 'medium')} → {item_html('star', 'extrasmall')}</div>",
            unsafe_allow_html=True,
        )
    elif state.phase == "lightness" and state.target_brightness is not None:
        cells = []
        for level, label in prompts.LIGHTBULB_LABELS.items():
            ring = "border: 3px solid #e53935; border-radius: 50%; padding: 4px;" if level == state.target_brightness else ""
            cells.append(
                f"<div style='text-align: center;'><span style='{ring}'>{item_html('lightbulb', level)}</span>"
                f"<div style='font-size: 13px;'>{label}</div></div>"
            )
        st.markdown(
            f"<div style='display: flex; justify-content: center; gap: 18px;'>{''.join(cells)}</div>",
            unsafe_allow_html=True,
        )


def render_machines(session):
    """Three machines, each with its slots (drop buttons) and outcome row."""
    controller = session.controller
    state = session.state
    layout = session.layout.layout

    cols = st.columns(len(layout.machine_order))
    for col, machine in zip(cols, layout.machine_order):
        color = layout.color_of(machine)
        with col:
            st.markdown(
                f"<div style='background: {COLOR_HEX[color]}; color: white; text-align: center; "
                f"border-radius: 12px; padding: 8px; font-weight: 700;'>{color.capitalize()} machine</div>",
                unsafe_allow_html=True,
            )
            slot_cols = st.columns(layout.num_slots)
            for slot, slot_col in enumerate(slot_cols):
                size = layout.slot_size(slot)
                with slot_col:
                    if st.button(
                        size[0].upper() if size != "extrasmall" else "XS",
                        key=f"slot_{machine}_{slot}",
                        disabled=not state.accepts_drops,
                        use_container_width=True,
                    ):
                        item = controller.drop(machine, slot)
                        if item is not None:
                            print(f"⭐ {state.phase}: {machine} slot {slot} -> {item.value}")
                        st.rerun()
                    shown = [] if state.hides_outcomes(machine) else session.board.items_at(machine, slot)
                    items = "".join(item_html(i.kind, i.value) for i in shown)
                    st.markdown(f"<div style='min-height: 48px; text-align: center;'>{items}</div>", unsafe_allow_html=True)

            if state.machines_clickable:
                if st.button("Choose", key=f"choose_{machine}", type="primary", use_container_width=True):
                    controller.click_machine(machine)
                    st.rerun()


def render_controls(session):
    """Explanation prompt, continue / finish / exit buttons."""
    controller = session.controller
    state = session.state

    if state.accepts_drops and state.item_kind:
        held = state.start_brightness if state.phase == "lightness" else "medium"
        st.markdown(
            f"Click a slot to drop the item {item_html(state.item_kind, held)} (left: **{state.remaining}**)",
            unsafe_allow_html=True,
        )
    if state.phase == "exploration" and state.step == "play":
        st.markdown(prompts.EXPLORATION_HINT)
        if st.button("Finish Playing", key="finish_playing"):
            controller.finish()
            st.rerun()

    if state.awaiting_explanation:
        text = st.text_area(state.explanation_prompt, key=f"why_{state.phase}_{state.epoch}_{len(session.records)}")
        if st.button("Submit", key=f"why_submit_{state.epoch}_{len(session.records)}"):
            controller.submit_explanation(text)
            st.rerun()

    if state.awaiting_continue:
        label = "Submit Experiment" if state.phase == "exploration" else "Continue"
        if st.button(label, key=f"continue_{state.phase}_{state.epoch}", type="primary", disabled=state.narration_pending):
            controller.advance()
            st.rerun()

    if state.exit_available:
        if st.button("Exit", key="exit_button"):
            controller.finish()
            st.rerun()


def star_factory_game_page(session):
    """Experiment page: everything the child sees between intake and the thank-you screen."""
    controller = session.controller
    state = session.state

    if not controller.started:
        controller.start()

    st.markdown(f"### {state.instruction}")
    narration_wait = play_narration(session)
    outcome_wait = flush_outcomes(session)

    render_reference(session)
    render_machines(session)
    render_controls(session)

    if controller.demo_ready:
        time.sleep(session.config.demo_step_seconds)
        controller.run_demo_step()
        st.rerun()
    waits = [w for w in (narration_wait, outcome_wait) if w is not None]
    if waits:
        time.sleep(min(waits))
        st.rerun()
