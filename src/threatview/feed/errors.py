"""Exceptions raised by the threat feed pipeline."""


class FeedError(Exception):
    """Base class for feed refresh failures.

    A refresh that raises any ``FeedError`` leaves the store at its
    last-known-good record set.
    """


class FeedFetchError(FeedError):
    """The upstream feed could not be reached or returned an HTTP error."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class FeedFormatError(FeedError):
    """The feed body is not JSON or has no recognisable record list."""


class CriteriaConflictError(ValueError):
    """Two filter criteria cannot be merged into a single criteria value."""


class TierLockedError(PermissionError):
    """An action was requested that the active subscription tier does not include."""

    def __init__(self, field_name: str, required_tier: str):
        super().__init__(
            f"{field_name} requires the {required_tier} tier"
        )
        self.field_name = field_name
        self.required_tier = required_tier
