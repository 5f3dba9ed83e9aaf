"""Tests for shared/exceptions.py."""

import pytest

from shared.exceptions import (
    PolyphonyError,
    NotFoundError,
    ValidationError,
    ConfigurationError,
    ExternalServiceError,
)


class TestPolyphonyError:
    def test_error_message(self):
        """PolyphonyError should store message."""
        error = PolyphonyError("Test error")
        assert error.message == "Test error"
        assert str(error) == "Test error"

    def test_default_code(self):
        """PolyphonyError should default code to class name."""
        error = PolyphonyError("Test error")
        assert error.code == "PolyphonyError"

    def test_custom_code(self):
        """PolyphonyError should accept custom code."""
        error = PolyphonyError("Test error", code="CUSTOM_ERROR")
        assert error.code == "CUSTOM_ERROR"

    def test_default_details(self):
        """PolyphonyError should default details to empty dict."""
        error = PolyphonyError("Test error")
        assert error.details == {}

    def test_to_dict(self):
        """PolyphonyError should convert to dict."""
        error = PolyphonyError("Test error", code="TEST_ERROR", details={"key": "value"})
        result = error.to_dict()

        assert result["error"] == "TEST_ERROR"
        assert result["message"] == "Test error"
        assert result["details"]["key"] == "value"


class TestSubclasses:
    @pytest.mark.parametrize("cls", [NotFoundError, ValidationError, ConfigurationError])
    def test_inherit_from_base(self, cls):
        """All error types should be catchable as PolyphonyError."""
        error = cls("Something went wrong")
        assert isinstance(error, PolyphonyError)
        assert error.code == cls.__name__

    def test_external_service_error_records_service(self):
        """ExternalServiceError should add the service to details."""
        error = ExternalServiceError("Upstream failed", service="reasoner")
        assert error.service == "reasoner"
        assert error.details["service"] == "reasoner"
        assert isinstance(error, PolyphonyError)
