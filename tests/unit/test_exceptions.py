"""Unit tests for the adapter exception hierarchy."""

from __future__ import annotations

import pytest

from siteadapters.exceptions import (
    AdapterError,
    AdapterErrorType,
    AdapterInitializationError,
    DuplicateAdapterError,
    ElementNotFoundError,
    InitializationError,
    InvalidExpressionError,
    NodeWaitTimeoutError,
    SiteNotDetectedError,
    ValidationFailedError,
)
from siteadapters.models import DetectionResult


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (SiteNotDetectedError("claude", None), AdapterErrorType.SITE_NOT_DETECTED),
        (ElementNotFoundError("gone"), AdapterErrorType.ELEMENT_NOT_FOUND),
        (InvalidExpressionError("div["), AdapterErrorType.SELECTOR_INVALID),
        (NodeWaitTimeoutError("slow"), AdapterErrorType.TIMEOUT),
        (ValidationFailedError("nope"), AdapterErrorType.VALIDATION_FAILED),
        (InitializationError("broken"), AdapterErrorType.INITIALIZATION_FAILED),
    ],
)
def test_error_types(error: AdapterError, expected: AdapterErrorType) -> None:
    assert isinstance(error, AdapterError)
    assert error.error_type is expected


def test_error_type_override() -> None:
    error = AdapterError("custom", error_type=AdapterErrorType.TIMEOUT, context={"k": 1})
    assert error.error_type is AdapterErrorType.TIMEOUT
    assert error.context == {"k": 1}
    assert AdapterError("plain").error_type is AdapterErrorType.INITIALIZATION_FAILED


def test_to_dict_omits_detection_object() -> None:
    detection = DetectionResult(profile_id="claude", confidence=0.9)
    error = SiteNotDetectedError("claude", detection)

    payload = error.to_dict()

    assert payload["type"] == "site_not_detected"
    assert "claude" in payload["message"]
    assert payload["context"] == {"profile_id": "claude"}
    assert error.detection is detection


def test_invalid_expression_message() -> None:
    error = InvalidExpressionError("div[", "Malformed attribute selector")
    assert "div[" in str(error)
    assert "Malformed" in str(error)
    assert error.context == {"expression": "div[", "reason": "Malformed attribute selector"}


def test_adapter_initialization_error_lists_failures() -> None:
    failures = {"site_b": RuntimeError("b failed"), "site_a": InitializationError("a failed")}

    error = AdapterInitializationError(failures)

    assert isinstance(error, InitializationError)
    assert error.failures is failures
    assert "site_a, site_b" in str(error)
    assert error.context["failed_profiles"] == ["site_a", "site_b"]
    assert error.context["errors"]["site_b"] == "b failed"


def test_duplicate_adapter_error() -> None:
    error = DuplicateAdapterError("chatgpt")
    assert error.profile_id == "chatgpt"
    assert "already registered" in str(error)
