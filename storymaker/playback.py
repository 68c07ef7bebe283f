"""Headless audio playback state machine.

Responsibilities:
- Model narration playback as explicit states driven by discrete events.
- Reject transitions that are not defined for the current state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PlaybackState(str, Enum):
    """Playback lifecycle states."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


class PlaybackEvent(str, Enum):
    """Events that drive playback transitions."""

    LOAD = "load"
    LOADED = "loaded"
    PLAY = "play"
    PAUSE = "pause"
    FINISH = "finish"
    FAIL = "fail"
    RESET = "reset"


_TRANSITIONS: dict[tuple[PlaybackState, PlaybackEvent], PlaybackState] = {
    (PlaybackState.IDLE, PlaybackEvent.LOAD): PlaybackState.LOADING,
    (PlaybackState.LOADING, PlaybackEvent.LOADED): PlaybackState.PLAYING,
    (PlaybackState.PLAYING, PlaybackEvent.PAUSE): PlaybackState.PAUSED,
    (PlaybackState.PAUSED, PlaybackEvent.PLAY): PlaybackState.PLAYING,
    (PlaybackState.PLAYING, PlaybackEvent.FINISH): PlaybackState.ENDED,
    (PlaybackState.ENDED, PlaybackEvent.PLAY): PlaybackState.PLAYING,
    (PlaybackState.LOADING, PlaybackEvent.FAIL): PlaybackState.ERROR,
    (PlaybackState.PLAYING, PlaybackEvent.FAIL): PlaybackState.ERROR,
    (PlaybackState.PAUSED, PlaybackEvent.FAIL): PlaybackState.ERROR,
}


class InvalidTransitionError(ValueError):
    """Raised when an event is not valid in the current playback state."""


@dataclass(slots=True)
class PlaybackStateMachine:
    """Explicit playback state machine.

    `reset` returns to idle from any state; every other transition must be
    listed in the transition table. Position is tracked in seconds and
    clamped to the known duration.
    """

    state: PlaybackState = PlaybackState.IDLE
    duration_seconds: float = 0.0
    position_seconds: float = 0.0
    error_message: str | None = None
    history: list[PlaybackState] = field(default_factory=list)

    def dispatch(
        self,
        event: PlaybackEvent,
        *,
        duration_seconds: float | None = None,
        error_message: str | None = None,
    ) -> PlaybackState:
        """Apply one event and return the new state."""

        if event is PlaybackEvent.RESET:
            self._move(PlaybackState.IDLE)
            self.duration_seconds = 0.0
            self.position_seconds = 0.0
            self.error_message = None
            return self.state

        target = _TRANSITIONS.get((self.state, event))
        if target is None:
            raise InvalidTransitionError(
                f"Event `{event.value}` is not valid in state `{self.state.value}`."
            )
        if event is PlaybackEvent.LOADED and duration_seconds is not None:
            self.duration_seconds = max(0.0, duration_seconds)
        if event is PlaybackEvent.FAIL:
            self.error_message = error_message or "Playback failed."
        if event is PlaybackEvent.FINISH:
            self.position_seconds = self.duration_seconds
        if event is PlaybackEvent.PLAY and self.state is PlaybackState.ENDED:
            self.position_seconds = 0.0
        self._move(target)
        return self.state

    def seek(self, position_seconds: float) -> float:
        """Move the playhead while playing or paused, clamped to `[0, duration]`."""

        if self.state not in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            raise InvalidTransitionError(f"Cannot seek in state `{self.state.value}`.")
        self.position_seconds = min(max(0.0, position_seconds), self.duration_seconds)
        return self.position_seconds

    def _move(self, target: PlaybackState) -> None:
        self.history.append(self.state)
        self.state = target
