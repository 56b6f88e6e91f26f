"""Participant intake validation."""

import re
from dataclasses import dataclass

# Whole years only; "10.0" is accepted as 10
AGE_PATTERN = re.compile(r"[0-9]+(\.0+)?")


class IntakeError(ValueError):
    """Raised when intake fields are missing or malformed; the message is shown to the participant."""


@dataclass(frozen=True)
class ParticipantProfile:
    id: str
    age: int
    sex: str

    def identity_fields(self):
        return [self.id, str(self.age), self.sex]


def validate_participant_info(prolific_id, age, sex):
    """Validate the raw intake strings and return a normalized profile."""
    prolific_id = (prolific_id or "").strip()
    age = (age or "").strip()
    sex = (sex or "").strip().upper()

    if not prolific_id or not age or not sex:
        raise IntakeError("Please fill out all fields.")

    if not AGE_PATTERN.fullmatch(age):
        raise IntakeError("Please enter a valid age.")
    age_value = int(age.split(".")[0])
    if age_value < 1 or age_value > 120:
        raise IntakeError("Please enter a valid age.")

    if sex not in ("F", "M"):
        raise IntakeError("Please enter F or M for sex.")

    return ParticipantProfile(id=prolific_id, age=age_value, sex=sex)
