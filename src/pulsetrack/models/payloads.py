"""Typed event payloads, one model per registered event name.

The schema registry decodes untyped property bags into these models at
the call-site boundary; everything past the registry works with typed
payloads.
"""

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field

from pulsetrack.models.metric import MetricName, MetricRating


class EventPayload(BaseModel):
    """Base class for event payloads.

    Unknown properties are rejected and values are never coerced (strict
    mode), so malformed telemetry is quarantined instead of silently
    reshaped.
    """

    model_config = ConfigDict(extra="forbid", strict=True, use_enum_values=True)

    event_name: ClassVar[str] = ""
    include_attribution: ClassVar[bool] = False

    def to_properties(self) -> dict[str, Any]:
        """Dump the payload as a JSON-compatible property bag."""
        return self.model_dump(mode="json", exclude_none=True)


class ConversionItem(BaseModel):
    """A line item attached to a commerce event."""

    model_config = ConfigDict(extra="forbid", strict=True)

    item_id: str
    item_name: str
    item_category: str
    quantity: int = Field(default=1, ge=0)
    price: float


class PageViewPayload(EventPayload):
    event_name: ClassVar[str] = "page_view"

    page: str
    title: str | None = None
    referrer: str | None = None


class ABTestAssignmentPayload(EventPayload):
    event_name: ClassVar[str] = "ab_test_assignment"

    test_name: str
    variant: str


class ABTestConversionPayload(EventPayload):
    event_name: ClassVar[str] = "ab_test_conversion"
    include_attribution: ClassVar[bool] = True

    test_name: str
    variant: str
    value: float | None = None


class WebVitalPayload(EventPayload):
    event_name: ClassVar[str] = "web_vital"

    # Enum members arrive as their string values once dumped
    metric: MetricName = Field(strict=False)
    value: float
    rating: MetricRating = Field(strict=False)
    delta: float = 0.0
    metric_id: str | None = None


class ConversionPayload(EventPayload):
    """Common fields of conversion events; these carry attribution context."""

    include_attribution: ClassVar[bool] = True

    value: float | None = None
    currency: str = "USD"


class BookingInitiatedPayload(ConversionPayload):
    event_name: ClassVar[str] = "booking_initiated"

    service_type: str
    service_category: str
    preferred_date: str | None = None
    source: str = "website"


class BookingStepCompletedPayload(ConversionPayload):
    event_name: ClassVar[str] = "booking_step_completed"

    step: int = Field(ge=0)
    step_name: str
    service_type: str


class BookingCompletedPayload(ConversionPayload):
    event_name: ClassVar[str] = "booking_completed"

    booking_id: str
    service_type: str
    service_category: str
    appointment_date: str
    duration_minutes: int = Field(ge=0)
    stylist: str | None = None
    customer_type: Literal["new", "returning"] | None = None
    payment_method: str | None = None


class PurchasePayload(ConversionPayload):
    event_name: ClassVar[str] = "purchase"

    transaction_id: str
    items: list[ConversionItem] = Field(default_factory=list)
    coupon: str | None = None
    payment_method: str | None = None
    shipping: float | None = None
    tax: float | None = None


class AddToCartPayload(ConversionPayload):
    event_name: ClassVar[str] = "add_to_cart"

    items: list[ConversionItem] = Field(min_length=1)


class RemoveFromCartPayload(ConversionPayload):
    event_name: ClassVar[str] = "remove_from_cart"

    items: list[ConversionItem] = Field(min_length=1)


class BeginCheckoutPayload(ConversionPayload):
    event_name: ClassVar[str] = "begin_checkout"

    items: list[ConversionItem] = Field(default_factory=list)


class NewsletterSignupPayload(ConversionPayload):
    event_name: ClassVar[str] = "newsletter_signup"

    source: str
    list_type: str = "general"
    interests: list[str] = Field(default_factory=list)


class ContactFormSubmitPayload(ConversionPayload):
    event_name: ClassVar[str] = "contact_form_submit"

    form_id: str
    form_name: str
    source: str
    inquiry_type: str


class PhoneCallClickPayload(ConversionPayload):
    event_name: ClassVar[str] = "phone_call_click"

    phone_number: str
    source: str
    page: str


class FunnelStepPayload(EventPayload):
    event_name: ClassVar[str] = "funnel_step"

    funnel_name: str
    funnel_step: int
    step_name: str
    data: dict[str, Any] = Field(default_factory=dict)


class GoalCompletionPayload(ConversionPayload):
    event_name: ClassVar[str] = "goal_completion"

    goal_name: str
    goal_category: str
    completion_time: float | None = None


BUILTIN_PAYLOADS: list[type[EventPayload]] = [
    PageViewPayload,
    ABTestAssignmentPayload,
    ABTestConversionPayload,
    WebVitalPayload,
    BookingInitiatedPayload,
    BookingStepCompletedPayload,
    BookingCompletedPayload,
    PurchasePayload,
    AddToCartPayload,
    RemoveFromCartPayload,
    BeginCheckoutPayload,
    NewsletterSignupPayload,
    ContactFormSubmitPayload,
    PhoneCallClickPayload,
    FunnelStepPayload,
    GoalCompletionPayload,
]
