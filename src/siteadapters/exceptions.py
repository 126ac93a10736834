"""Site adapter exception hierarchy.

Every error carries an ``AdapterErrorType`` and a ``context`` dict with
structured diagnostics (profile id, expressions tried, elapsed time).
"No match" outcomes are never raised: detection returns a result with
``profile_id=None`` and resolution returns a failed ``NodeResolutionResult``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class AdapterErrorType(str, Enum):
    """Error kinds surfaced by detection, resolution and adapter setup."""

    SITE_NOT_DETECTED = "site_not_detected"
    ELEMENT_NOT_FOUND = "element_not_found"
    SELECTOR_INVALID = "selector_invalid"
    TIMEOUT = "timeout"
    VALIDATION_FAILED = "validation_failed"
    INITIALIZATION_FAILED = "initialization_failed"


class AdapterError(Exception):
    """Base exception for all site adapter errors.

    Attributes:
        error_type: The error kind.
        context: Structured diagnostic context.
    """

    error_type: AdapterErrorType = AdapterErrorType.INITIALIZATION_FAILED

    def __init__(
        self,
        message: str,
        *,
        error_type: AdapterErrorType | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        if error_type is not None:
            self.error_type = error_type
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error to a plain dictionary."""
        return {
            "type": self.error_type.value,
            "message": str(self),
            "context": {k: v for k, v in self.context.items() if k != "detection"},
        }


class SiteNotDetectedError(AdapterError):
    """Raised when a profile matched with high confidence but has no registered adapter.

    This is a configuration error, distinct from the normal "no match" outcome.
    """

    error_type = AdapterErrorType.SITE_NOT_DETECTED

    def __init__(self, profile_id: str, detection: Any) -> None:
        self.profile_id = profile_id
        self.detection = detection
        super().__init__(
            f"No adapter registered for detected profile: {profile_id}",
            context={"profile_id": profile_id, "detection": detection},
        )


class ElementNotFoundError(AdapterError):
    """Resolution exhausted every expression or ran out of budget."""

    error_type = AdapterErrorType.ELEMENT_NOT_FOUND


class InvalidExpressionError(AdapterError):
    """A query expression could not be parsed by the host."""

    error_type = AdapterErrorType.SELECTOR_INVALID

    def __init__(self, expression: str, reason: str = "") -> None:
        self.expression = expression
        super().__init__(
            f"Invalid query expression {expression!r}: {reason}" if reason else f"Invalid query expression {expression!r}",
            context={"expression": expression, "reason": reason},
        )


class NodeWaitTimeoutError(AdapterError):
    """A bounded wait for a node expired."""

    error_type = AdapterErrorType.TIMEOUT


class ValidationFailedError(AdapterError):
    """A node was found but rejected by its validator."""

    error_type = AdapterErrorType.VALIDATION_FAILED


class InitializationError(AdapterError):
    """Adapter setup could not complete."""

    error_type = AdapterErrorType.INITIALIZATION_FAILED


class AdapterInitializationError(InitializationError):
    """One or more adapters failed during ``AdapterRegistry.initialize_all``.

    Attributes:
        failures: Mapping of profile id to the exception raised by that adapter.
    """

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = failures
        ids = ", ".join(sorted(failures))
        super().__init__(
            f"Failed to initialize {len(failures)} adapter(s): {ids}",
            context={"failed_profiles": sorted(failures), "errors": {k: str(v) for k, v in failures.items()}},
        )


class DuplicateAdapterError(AdapterError):
    """An adapter for the same profile id is already registered."""

    error_type = AdapterErrorType.INITIALIZATION_FAILED

    def __init__(self, profile_id: str) -> None:
        self.profile_id = profile_id
        super().__init__(
            f"Adapter for {profile_id} is already registered",
            context={"profile_id": profile_id},
        )
