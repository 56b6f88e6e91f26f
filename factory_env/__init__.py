"""Trial & phase engine for the star factory experiment."""

from factory_env.config import ExperimentConfig
from factory_env.intake import IntakeError, ParticipantProfile, validate_participant_info
from factory_env.layout import MACHINES, LayoutError, LayoutRandomizer, SessionLayout
from factory_env.outcomes import OutcomeGenerator
from factory_env.phases import PHASES, PhaseController
from factory_env.session import ExperimentSession
from factory_env.upload import ExportError

__all__ = [
    "ExperimentConfig",
    "ExperimentSession",
    "ExportError",
    "IntakeError",
    "LayoutError",
    "LayoutRandomizer",
    "MACHINES",
    "OutcomeGenerator",
    "PHASES",
    "ParticipantProfile",
    "PhaseController",
    "SessionLayout",
    "validate_participant_info",
]
