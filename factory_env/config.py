"""Experiment settings read from the environment (and a local .env file)."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

SLOT_ORDER_POLICIES = ("fixed", "sample")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(name, raw, default):
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be true or false, got {raw!r}")


def _parse_int(name, raw, default):
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class ExperimentConfig:
    """Knobs for one deployment of the experiment.

    ``slot_order_policy`` decides how the three slot sizes are laid out:
    ``fixed`` pins every participant to large/medium/small, ``sample`` draws
    one of the permitted orderings per participant.
    ``include_exploration`` wires the free-play phase after the verbal
    questions; when off the session ends and exports after the last question.
    """

    slot_order_policy: str = "fixed"
    include_exploration: bool = True
    collector_url: str = ""
    audio_dir: str = "audio"
    debug: bool = False
    outcome_delay_ms: int = 700
    seed: Optional[int] = None
    irb_protocol_number: str = ""

    def __post_init__(self):
        if self.slot_order_policy not in SLOT_ORDER_POLICIES:
            raise ValueError(
                f"SLOT_ORDER_POLICY must be one of {SLOT_ORDER_POLICIES}, got {self.slot_order_policy!r}"
            )
        if self.outcome_delay_ms < 0:
            raise ValueError("OUTCOME_DELAY_MS must not be negative")

    @property
    def demo_step_seconds(self):
        # Pause between scripted demo drops
        return 0.0 if self.debug else 1.5

    @classmethod
    def from_env(cls, environ=None):
        if environ is None:
            load_dotenv()
            environ = os.environ
        policy = (environ.get("SLOT_ORDER_POLICY") or "fixed").strip().lower()
        return cls(
            slot_order_policy=policy,
            include_exploration=_parse_bool("EXPLORATION_PHASE", environ.get("EXPLORATION_PHASE"), True),
            collector_url=(environ.get("COLLECTOR_URL") or "").strip(),
            audio_dir=(environ.get("AUDIO_DIR") or "audio").strip(),
            debug=_parse_bool("FACTORY_DEBUG", environ.get("FACTORY_DEBUG"), False),
            outcome_delay_ms=_parse_int("OUTCOME_DELAY_MS", environ.get("OUTCOME_DELAY_MS"), 700),
            seed=_parse_int("FACTORY_SEED", environ.get("FACTORY_SEED"), None),
            irb_protocol_number=environ.get("IRB_PROTOCOL_NUMBER", ""),
        )
