"""Custom exception classes for pulsetrack."""


class PulseTrackError(Exception):
    """Base exception for all pulsetrack errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict | None = None,
    ):
        """Initialize PulseTrackError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to a diagnostic dictionary."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(PulseTrackError):
    """Raised when an event fails schema validation."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
        event_name: str | None = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
            event_name: Name of the rejected event.
            error_code: Machine-readable error code.
        """
        self.errors = errors or []
        self.event_name = event_name
        details: dict = {"errors": self.errors}
        if event_name:
            details["event_name"] = event_name
        super().__init__(message=message, error_code=error_code, details=details)

    @classmethod
    def from_pydantic(cls, exc: Exception, event_name: str | None = None) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": error.get("msg", "Invalid value"),
                        "type": error.get("type", "unknown"),
                    }
                )
        return cls(message="Validation failed", errors=errors, event_name=event_name)

    @classmethod
    def unknown_event(cls, event_name: str) -> "ValidationError":
        """Create ValidationError for an event name with no registered schema."""
        return cls(
            message=f"No schema registered for event '{event_name}'",
            event_name=event_name,
            error_code="UNKNOWN_EVENT",
        )


class StorageUnavailableError(PulseTrackError):
    """Raised when durable storage cannot be read or written."""

    def __init__(self, backend: str, message: str | None = None, original_error: str | None = None):
        """Initialize StorageUnavailableError."""
        self.backend = backend
        super().__init__(
            message=message or f"Storage backend '{backend}' is unavailable",
            error_code="STORAGE_UNAVAILABLE",
            details={"backend": backend, "original_error": original_error},
        )


class DeliveryError(PulseTrackError):
    """Raised when a batch could not be delivered to the collector."""

    def __init__(
        self,
        endpoint: str,
        message: str | None = None,
        status_code: int | None = None,
        original_error: str | None = None,
    ):
        """Initialize DeliveryError.

        Args:
            endpoint: Collector endpoint URL.
            message: Optional custom message.
            status_code: HTTP status returned by the collector, if any.
            original_error: String form of the underlying transport error.
        """
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(
            message=message or f"Collector '{endpoint}' rejected the batch",
            error_code="DELIVERY_FAILED",
            details={
                "endpoint": endpoint,
                "status_code": status_code,
                "original_error": original_error,
            },
        )

    @property
    def retryable(self) -> bool:
        """Whether the failure is worth retrying.

        Every failure is requeued; this only separates collector-side
        rejections (4xx) from transient failures for logging.
        """
        return self.status_code is None or self.status_code >= 500 or self.status_code == 429


class ProviderError(PulseTrackError):
    """Raised when an analytics provider fails to accept an event."""

    def __init__(self, provider: str, event_name: str, original_error: str | None = None):
        """Initialize ProviderError."""
        self.provider = provider
        super().__init__(
            message=f"Provider '{provider}' failed to report '{event_name}'",
            error_code="PROVIDER_FAILED",
            details={
                "provider": provider,
                "event_name": event_name,
                "original_error": original_error,
            },
        )


class UnsupportedMetricError(PulseTrackError):
    """Raised by a metric source that cannot observe a signal."""

    def __init__(self, metric: str):
        """Initialize UnsupportedMetricError."""
        self.metric = metric
        super().__init__(
            message=f"Metric '{metric}' is not supported by this runtime",
            error_code="UNSUPPORTED_METRIC",
            details={"metric": metric},
        )
