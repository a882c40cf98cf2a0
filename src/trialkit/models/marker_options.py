"""
Raw options of the ``@pytest.mark.retrying`` marker.

Parses marker arguments into typed values and turns them into a RetryPolicy.
Type errors and unknown keywords surface as RetryConfigurationError, the same
as constraint violations, so every misconfiguration fails the test the same
way before any attempt runs.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from trialkit.config import Settings
from trialkit.exceptions import RetryConfigurationError
from trialkit.retry.policy import RetryPolicy


class RetryingOptions(BaseModel):
    """
    Typed view of ``@pytest.mark.retrying(...)`` arguments.

    ``None`` means "not given" and falls back to Settings defaults; ``0``
    for value/max_attempts means "not set".
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    value: StrictInt = Field(default=0, description="Shorthand for max_attempts")
    max_attempts: StrictInt = Field(default=0, description="Total attempt budget")
    min_success: Optional[StrictInt] = Field(default=None, description="Successes required")
    suspend_for_ms: Optional[StrictInt] = Field(default=None, description="Delay before each retry")
    on_exceptions: tuple[type[BaseException], ...] = Field(
        default=(),
        description="Expected exception kinds; empty means all kinds are retried",
    )
    name: Optional[StrictStr] = Field(default=None, description="Attempt display-name template")

    @field_validator("on_exceptions", mode="before")
    @classmethod
    def wrap_single_exception(cls, v: Any) -> Any:
        """Allow ``on_exceptions=ValueError`` as well as a sequence."""
        if isinstance(v, type):
            return (v,)
        return v

    @classmethod
    def from_marker(cls, args: tuple[Any, ...], kwargs: dict[str, Any]) -> "RetryingOptions":
        """
        Build options from a marker's positional and keyword arguments.

        At most one positional argument is accepted: the ``value`` shorthand.

        Raises:
            RetryConfigurationError: On bad argument shapes or types
        """
        data = dict(kwargs)
        if len(args) > 1:
            raise RetryConfigurationError(
                f"@retrying accepts at most one positional argument (the attempt count), got {len(args)}.",
                constraint="arguments",
            )
        if args:
            if "value" in data:
                raise RetryConfigurationError(
                    "@retrying got `value` both positionally and as a keyword.",
                    constraint="arguments",
                )
            data["value"] = args[0]

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            ]
            raise RetryConfigurationError(
                f"@retrying has invalid options: {'; '.join(problems)}",
                constraint="options",
                errors=problems,
            ) from e

    def to_policy(self, settings: Settings) -> RetryPolicy:
        """Validate against policy constraints, filling gaps from settings."""
        return RetryPolicy.create(
            value=self.value,
            max_attempts=self.max_attempts,
            min_success=self.min_success if self.min_success is not None else settings.DEFAULT_MIN_SUCCESS,
            suspend_for_ms=(
                self.suspend_for_ms if self.suspend_for_ms is not None else settings.DEFAULT_SUSPEND_FOR_MS
            ),
            on_exceptions=self.on_exceptions,
            name=self.name if self.name is not None else settings.DEFAULT_NAME_TEMPLATE,
        )
