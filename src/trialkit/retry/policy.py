"""
Retry policy: the immutable, validated configuration of a retrying test.

A policy is built once per test and never changes afterwards. Construction
either succeeds with an internally consistent policy or raises
RetryConfigurationError naming the violated constraint; there are no partial
policies.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from trialkit.exceptions import RetryConfigurationError
from trialkit.naming import DEFAULT_NAME_TEMPLATE


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget, success quota, suspension and expected exception kinds.

    Attributes:
        max_attempts: Total invocation budget (>= 2)
        min_success: Successes required for overall success (1 <= x < max_attempts)
        suspend_for_ms: Delay before every attempt after the first (>= 0)
        on_exceptions: Expected exception kinds; empty means all kinds
        name: Display-name template for individual attempts
    """

    max_attempts: int
    min_success: int = 1
    suspend_for_ms: int = 0
    on_exceptions: tuple[type[BaseException], ...] = ()
    name: str = DEFAULT_NAME_TEMPLATE

    def __post_init__(self) -> None:
        """Validate policy invariants."""
        if self.min_success < 1:
            raise RetryConfigurationError(
                "@retrying requires that `min_success` be greater than or equal to 1.",
                constraint="min_success",
                min_success=self.min_success,
            )

        if self.max_attempts <= self.min_success:
            # A budget equal to the quota is plain repetition
            recommendation = (
                " Repeating the test a fixed number of times is recommended as a replacement."
                if self.max_attempts == self.min_success
                else ""
            )
            lower_bound = "1" if self.min_success == 1 else "`min_success`"
            raise RetryConfigurationError(
                f"@retrying requires that `max_attempts` be greater than {lower_bound}.{recommendation}",
                constraint="max_attempts",
                max_attempts=self.max_attempts,
                min_success=self.min_success,
            )

        if self.suspend_for_ms < 0:
            raise RetryConfigurationError(
                "@retrying requires that `suspend_for_ms` be greater than or equal to 0.",
                constraint="suspend_for_ms",
                suspend_for_ms=self.suspend_for_ms,
            )

        if not self.name:
            raise RetryConfigurationError(
                "@retrying can not have an empty display name.",
                constraint="name",
            )

        for kind in self.on_exceptions:
            if not (isinstance(kind, type) and issubclass(kind, BaseException)):
                raise RetryConfigurationError(
                    f"@retrying requires that `on_exceptions` only contain exception types, got {kind!r}.",
                    constraint="on_exceptions",
                )

    @classmethod
    def create(
        cls,
        value: int = 0,
        max_attempts: int = 0,
        min_success: int = 1,
        suspend_for_ms: int = 0,
        on_exceptions: Iterable[type[BaseException]] = (),
        name: str = DEFAULT_NAME_TEMPLATE,
    ) -> "RetryPolicy":
        """
        Build a policy from raw marker-style options.

        Exactly one of ``value`` (shorthand) and ``max_attempts`` must be set;
        zero means "not set".

        Raises:
            RetryConfigurationError: If any constraint is violated
        """
        if value == 0 and max_attempts == 0:
            raise RetryConfigurationError(
                "@retrying requires that one of `value` or `max_attempts` be set.",
                constraint="budget",
            )
        if value != 0 and max_attempts != 0:
            raise RetryConfigurationError(
                "@retrying requires that one of `value` or `max_attempts` be set, but not both.",
                constraint="budget",
                value=value,
                max_attempts=max_attempts,
            )

        return cls(
            max_attempts=max_attempts if max_attempts != 0 else value,
            min_success=min_success,
            suspend_for_ms=suspend_for_ms,
            on_exceptions=tuple(on_exceptions),
            name=name,
        )
