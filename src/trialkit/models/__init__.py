"""Data models shared by the retry controller and the pytest plugin."""

from trialkit.models.attempt import AttemptSignal, AttemptSlot
from trialkit.models.enums import OutcomeKind, SignalKind, Verdict

__all__ = [
    "AttemptSignal",
    "AttemptSlot",
    "OutcomeKind",
    "SignalKind",
    "Verdict",
]
