"""
Per-attempt data handed between the retry controller and the host runtime.

AttemptSlot identifies one invocation; AttemptSignal tells the host how to
surface the outcome of that invocation.
"""

from dataclasses import dataclass, field
from uuid import uuid4

from trialkit.exceptions import AttemptAborted, RetryStateError
from trialkit.models.enums import SignalKind, Verdict


@dataclass(frozen=True)
class AttemptSlot:
    """
    One invocation slot issued by ``RetryController.next_attempt``.
    
    Attributes:
        index: 1-based attempt number
        display_name: Human-readable name from the naming template
        attempt_id: Opaque identity, unique per slot
    """

    index: int
    display_name: str
    attempt_id: str = field(default_factory=lambda: uuid4().hex)

    def __post_init__(self) -> None:
        if self.index < 1:
            raise ValueError("index must be >= 1")


@dataclass(frozen=True)
class AttemptSignal:
    """
    Outcome of ``RetryController.report_outcome``.
    
    Attributes:
        kind: Success, skip or failure
        message: Human-readable text including attempt counters
        error: Exception the host should raise/report (None on success)
        verdict: Terminal verdict if the sequence just ended, else None
        retrying: True when a transient failure will be retried
    """

    kind: SignalKind
    message: str
    error: BaseException | None = None
    verdict: Verdict | None = None
    retrying: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.verdict is not None

    def raise_for_signal(self) -> None:
        """
        Raise the exception form of this signal.
        
        Success is a no-op. Skips raise AttemptAborted chained to the
        attempt's exception; failures raise their error unchanged.

        Raises:
            RetryStateError: If a failure signal carries no error
        """
        if self.kind is SignalKind.SUCCESS:
            return
        if self.kind is SignalKind.SKIP:
            raise AttemptAborted(self.message) from self.error
        if self.error is None:
            raise RetryStateError(f"Failure signal has no error to raise: {self.message}")
        raise self.error
