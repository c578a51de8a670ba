"""Tests for the exception hierarchy."""

import pytest
from pydantic import BaseModel, ValidationError as PydanticValidationError

from pulsetrack.utils.exceptions import (
    DeliveryError,
    ProviderError,
    PulseTrackError,
    StorageUnavailableError,
    UnsupportedMetricError,
    ValidationError,
)


class _Sample(BaseModel):
    count: int


class TestPulseTrackError:
    """Tests for the base error."""

    def test_to_dict_omits_empty_details(self):
        error = PulseTrackError("boom")

        assert error.to_dict() == {"error": True, "error_code": "INTERNAL_ERROR", "message": "boom"}

    def test_to_dict_includes_details(self):
        error = PulseTrackError("boom", error_code="X", details={"a": 1})

        assert error.to_dict()["details"] == {"a": 1}
        assert error.to_dict()["error_code"] == "X"


class TestValidationError:
    """Tests for ValidationError constructors."""

    def test_from_pydantic_flattens_locations(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            _Sample(count="many")

        error = ValidationError.from_pydantic(exc_info.value, event_name="sample")

        assert error.error_code == "VALIDATION_ERROR"
        assert error.event_name == "sample"
        assert error.errors[0]["field"] == "count"
        assert error.details["event_name"] == "sample"

    def test_unknown_event(self):
        error = ValidationError.unknown_event("mystery")

        assert error.error_code == "UNKNOWN_EVENT"
        assert "mystery" in error.message


class TestDeliveryError:
    """Tests for DeliveryError retry classification."""

    @pytest.mark.parametrize(
        "status_code,retryable",
        [(None, True), (500, True), (503, True), (429, True), (400, False), (404, False)],
    )
    def test_retryable(self, status_code, retryable):
        error = DeliveryError("http://collector.test", status_code=status_code)

        assert error.retryable is retryable
        assert error.details["status_code"] == status_code


def test_error_codes():
    """Each error type carries its own code and is a PulseTrackError."""
    errors = [
        (StorageUnavailableError("file"), "STORAGE_UNAVAILABLE"),
        (ProviderError("gtag", "purchase"), "PROVIDER_FAILED"),
        (UnsupportedMetricError("INP"), "UNSUPPORTED_METRIC"),
        (DeliveryError("http://collector.test"), "DELIVERY_FAILED"),
    ]
    for error, code in errors:
        assert isinstance(error, PulseTrackError)
        assert error.error_code == code
