"""One participant's run through the experiment, from intake to upload."""

import numpy as np

from factory_env.config import ExperimentConfig
from factory_env.export import build_payload
from factory_env.layout import LayoutRandomizer
from factory_env.narration import NarrationPlayer
from factory_env.outcomes import OutcomeGenerator
from factory_env.phases import PhaseController, PhaseState
from factory_env.presentation import OutcomeBoard
from factory_env.trial_log import TrialLogger
from factory_env.upload import ExportError


class ExperimentSession:
    """Owns every piece of per-participant state; nothing about a run lives in module globals."""

    def __init__(self, profile, config=None, rng=None, clock=None):
        self.profile = profile
        self.config = config or ExperimentConfig()
        if rng is None:
            rng = np.random.default_rng(self.config.seed)

        self.layout = LayoutRandomizer(rng, self.config.slot_order_policy)
        self.layout.generate_layout()
        self.generator = OutcomeGenerator(self.layout, rng)
        self.state = PhaseState()
        self.logger = TrialLogger(profile, self.layout, self.state, clock)
        self.board = OutcomeBoard()
        self.cues = []
        self.narration = NarrationPlayer(self.config.audio_dir)
        self.payload = None
        self.last_export_error = None
        self.closed = False
        self.controller = PhaseController(
            self.state,
            self.layout,
            self.generator,
            self.logger,
            board=self.board,
            include_exploration=self.config.include_exploration,
            outcome_delay_ms=self.config.outcome_delay_ms,
            on_cue=self.cues.append,
            on_terminal=self._prepare_payload,
        )
        print(f"🧪 Session created for {profile.id}")

    @property
    def records(self):
        return self.logger.records

    @property
    def finished(self):
        return self.state.phase == "terminal"

    def next_cue(self):
        """Oldest narration cue not yet handed to the audio player."""
        return self.cues.pop(0) if self.cues else None

    def play_narration(self, now=None):
        """Seconds left on the clip now playing, None once every queued cue has been voiced."""
        return self.narration.step(self.next_cue, self.controller.narration_done, now)

    def _prepare_payload(self):
        self.payload = build_payload(self.profile, self.logger.records)

    def export(self, transport):
        """Upload the session table once. Failures are kept in ``last_export_error``; calling again retries."""
        if self.closed:
            return True
        if self.payload is None:
            self._prepare_payload()
        try:
            transport.send(self.payload)
        except ExportError as e:
            self.last_export_error = str(e)
            print(f"❌ Failed to save session data: {e}")
            return False
        self.last_export_error = None
        self.closed = True
        return True
