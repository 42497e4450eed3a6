"""Exception hierarchy for pr-reviewer.

Every error the core raises derives from ReviewError and carries the
``code`` reported in the response envelope's ``error.code`` field. The
request router is the only place these are turned into envelopes; library
code raises and lets them propagate.
"""

from __future__ import annotations

from typing import Any


class ReviewError(Exception):
    """Base class for all pr-reviewer errors.

    Attributes:
        code: Stable machine-readable error code.
        message: Human-readable description.
        details: Optional extra context included in the envelope.
    """

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidRequestError(ReviewError):
    """Malformed request, rejected before any side effect."""

    code = "INVALID_REQUEST"


class AlreadyInProgressError(ReviewError):
    """A review was started while one is already active for the same id."""

    code = "REVIEW_IN_PROGRESS"

    def __init__(self, pr_id: str):
        self.pr_id = pr_id
        super().__init__(f"A review is already in progress for PR {pr_id}")


class NoFilesToReviewError(ReviewError):
    """Every changed file was removed by the exclusion patterns."""

    code = "NO_FILES_TO_REVIEW"

    def __init__(self, pr_id: str, changed_count: int = 0):
        self.pr_id = pr_id
        self.changed_count = changed_count
        super().__init__(
            "No files to review after applying exclude patterns",
            details={"prNumber": pr_id, "changedFiles": changed_count},
        )


class NotInitializedError(ReviewError):
    """A store operation was called before initialize()."""

    code = "NOT_INITIALIZED"

    def __init__(self, store_name: str):
        super().__init__(f"{store_name} is not initialized")


class UpstreamError(ReviewError):
    """The code-hosting API failed or returned something unusable.

    Attributes:
        status_code: HTTP status of the failed response, if one was received.
    """

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        self.status_code = status_code
        super().__init__(message, details=details)


class InternalError(ReviewError):
    """Unexpected failure inside the core."""

    code = "INTERNAL_ERROR"


class ConfigurationError(ReviewError):
    """Required configuration is missing or inconsistent."""

    code = "CONFIGURATION_ERROR"
