"""
Exceptions raised by the ASG rolling refresh tool.
"""

from typing import Optional


class ValidationError(ValueError):
    """Input rejected before any call to AWS is made."""


class InvalidMinHealthyPercentage(ValidationError):
    """Minimum healthy percentage is not an integer in [0, 100].

    ``default`` holds the value callers may fall back to; it is never
    substituted automatically.
    """

    def __init__(self, value, default: int):
        self.value = value
        self.default = default
        super().__init__(
            "Minimum healthy percentage for refreshing instances must be "
            f"an integer between 0 and 100, got {value!r}"
        )


class RefreshInProgressError(Exception):
    """An instance refresh is already running on the group."""

    def __init__(self, group_name: str, cause: Optional[Exception] = None):
        self.group_name = group_name
        self.cause = cause
        super().__init__(f"An instance refresh is already in progress for ASG {group_name}")
