"""Narration cues emitted by the engine, the audio files that voice them, and their playback pacing."""

import datetime
import os
from dataclasses import dataclass
from typing import Optional

from mutagen import File as MutagenFile
from mutagen import MutagenError

DEMO_CLIPS = {
    "introduction": "demo-instructions.mp3",
    "finish": "demo-finish.mp3",
    "small": "demo-smaller.mp3",
    "medium": "demo-same.mp3",
    "large": "demo-bigger.mp3",
}


@dataclass(frozen=True)
class NarrationCue:
    phase: str
    tag: Optional[str] = None
    index: Optional[int] = None


def audio_filename(cue):
    if cue.phase == "demo":
        return DEMO_CLIPS.get(cue.tag)
    if cue.phase == "comprehension":
        return "comprehension.mp3"
    if cue.phase == "extrasmall":
        return "extrasmall-smallExperiment.mp3" if cue.tag == "smallExperiment" else "extrasmall.mp3"
    if cue.phase == "question" and cue.index is not None:
        return f"question-{cue.index + 1}.mp3"
    if cue.phase == "verbalquestion" and cue.index is not None:
        return f"verbalQuestion-{cue.index + 1}.mp3"
    if cue.phase == "lightness" and cue.index is not None:
        return f"lightness-{cue.index + 1}.mp3"
    if cue.phase == "exploration":
        return "exploration.mp3"
    return None


def audio_path(cue, audio_dir="audio"):
    """Path of the clip for ``cue``, or None when there is no clip or the file is missing."""
    filename = audio_filename(cue)
    if filename is None:
        return None
    path = os.path.join(audio_dir, filename)
    if not os.path.exists(path):
        print(f"⚠️ Narration asset missing: {path}")
        return None
    return path


def clip_duration(path):
    """Length of an audio clip in seconds, 0.0 when it cannot be read."""
    try:
        audio = MutagenFile(path)
    except (MutagenError, OSError) as e:
        print(f"⚠️ Could not read narration clip {path}: {e}")
        return 0.0
    if audio is None or audio.info is None:
        print(f"⚠️ Unknown audio format: {path}")
        return 0.0
    return float(audio.info.length)


class NarrationPlayer:
    """Plays queued cues one after another.

    The engine is told the narration is done only once the last queued clip
    has run its full length; a cue with no readable clip is skipped.
    """

    def __init__(self, audio_dir="audio", duration=None):
        self.audio_dir = audio_dir
        self._duration = duration or clip_duration
        self.current_path = None
        self._ends_at = None

    @property
    def playing(self):
        return self._ends_at is not None

    def step(self, next_cue, done, now=None):
        """Start the next clip when the current one has ended.

        ``next_cue`` pops the oldest queued cue (None when empty) and ``done``
        acknowledges the engine. Returns the seconds left on the clip being
        played, or None when nothing is playing.
        """
        now = now or datetime.datetime.now()
        if self._ends_at is not None and now < self._ends_at:
            return (self._ends_at - now).total_seconds()

        self.current_path, self._ends_at = None, None
        cue = next_cue()
        while cue is not None:
            path = audio_path(cue, self.audio_dir)
            length = self._duration(path) if path else 0.0
            if length > 0:
                self.current_path = path
                self._ends_at = now + datetime.timedelta(seconds=length)
                print(f"🔊 Playing {path} ({length:.1f}s)")
                return length
            cue = next_cue()
        done()
        return None
