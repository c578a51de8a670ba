"""Conversion tracking helpers.

Thin wrappers that shape business events into the registered conversion
payloads and hand them to the pipeline. Validation still happens in the
schema registry, so a malformed call is dropped with a diagnostic rather
than raising.
"""

from typing import Any

from pulsetrack.models.event import Event
from pulsetrack.services.pipeline import TelemetryPipeline

BOOKING_FUNNEL = "booking"
FUNNEL_COMPLETED_STEP = 99


def _compact(properties: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in properties.items() if value is not None}


class ConversionTracker:
    """Emits booking, commerce and lead conversions through a pipeline."""

    def __init__(self, pipeline: TelemetryPipeline, currency: str = "USD"):
        self.pipeline = pipeline
        self.currency = currency

    def _track(self, event_name: str, properties: dict[str, Any]) -> Event | None:
        return self.pipeline.track(event_name, _compact(properties))

    # Booking

    def booking_initiated(
        self,
        service_type: str,
        service_category: str,
        estimated_value: float,
        preferred_date: str | None = None,
        source: str = "website",
    ) -> Event | None:
        """Track the start of a booking and open the booking funnel."""
        event = self._track(
            "booking_initiated",
            {
                "value": estimated_value,
                "currency": self.currency,
                "service_type": service_type,
                "service_category": service_category,
                "preferred_date": preferred_date,
                "source": source,
            },
        )
        self.funnel_step(
            BOOKING_FUNNEL,
            1,
            "initiated",
            {"service_type": service_type, "estimated_value": estimated_value},
        )
        return event

    def booking_step_completed(
        self,
        step: int,
        step_name: str,
        service_type: str,
        estimated_value: float,
    ) -> Event | None:
        event = self._track(
            "booking_step_completed",
            {
                "value": estimated_value,
                "currency": self.currency,
                "step": step,
                "step_name": step_name,
                "service_type": service_type,
            },
        )
        self.funnel_step(
            BOOKING_FUNNEL,
            step,
            step_name,
            {"service_type": service_type, "estimated_value": estimated_value},
        )
        return event

    def booking_completed(
        self,
        booking_id: str,
        service_type: str,
        service_category: str,
        value: float,
        appointment_date: str,
        duration_minutes: int,
        stylist: str | None = None,
        customer_type: str | None = None,
        payment_method: str | None = None,
    ) -> Event | None:
        """Track a completed booking.

        Also emits a ``purchase`` for the booked service and closes the
        booking funnel.
        """
        event = self._track(
            "booking_completed",
            {
                "value": value,
                "currency": self.currency,
                "booking_id": booking_id,
                "service_type": service_type,
                "service_category": service_category,
                "appointment_date": appointment_date,
                "duration_minutes": duration_minutes,
                "stylist": stylist,
                "customer_type": customer_type,
                "payment_method": payment_method,
            },
        )
        self.purchase(
            transaction_id=booking_id,
            value=value,
            items=[
                {
                    "item_id": service_type,
                    "item_name": service_type,
                    "item_category": service_category,
                    "quantity": 1,
                    "price": value,
                }
            ],
        )
        self.funnel_step(
            BOOKING_FUNNEL,
            FUNNEL_COMPLETED_STEP,
            "completed",
            {"booking_id": booking_id, "value": value},
        )
        return event

    # Commerce

    def purchase(
        self,
        transaction_id: str,
        value: float,
        items: list[dict[str, Any]] | None = None,
        currency: str | None = None,
        coupon: str | None = None,
        payment_method: str | None = None,
        shipping: float | None = None,
        tax: float | None = None,
    ) -> Event | None:
        return self._track(
            "purchase",
            {
                "transaction_id": transaction_id,
                "value": value,
                "currency": currency or self.currency,
                "items": items or [],
                "coupon": coupon,
                "payment_method": payment_method,
                "shipping": shipping,
                "tax": tax,
            },
        )

    def add_to_cart(self, items: list[dict[str, Any]], value: float, currency: str | None = None) -> Event | None:
        return self._track("add_to_cart", {"items": items, "value": value, "currency": currency or self.currency})

    def remove_from_cart(self, items: list[dict[str, Any]], value: float, currency: str | None = None) -> Event | None:
        return self._track("remove_from_cart", {"items": items, "value": value, "currency": currency or self.currency})

    def begin_checkout(self, items: list[dict[str, Any]], value: float, currency: str | None = None) -> Event | None:
        return self._track("begin_checkout", {"items": items, "value": value, "currency": currency or self.currency})

    # Leads

    def newsletter_signup(
        self,
        source: str,
        list_type: str = "general",
        interests: list[str] | None = None,
    ) -> Event | None:
        return self._track(
            "newsletter_signup",
            {"source": source, "list_type": list_type, "interests": interests or []},
        )

    def contact_form_submit(
        self,
        form_id: str,
        form_name: str,
        source: str,
        inquiry_type: str,
        estimated_value: float | None = None,
    ) -> Event | None:
        return self._track(
            "contact_form_submit",
            {
                "form_id": form_id,
                "form_name": form_name,
                "source": source,
                "inquiry_type": inquiry_type,
                "value": estimated_value,
            },
        )

    def phone_call_click(self, phone_number: str, source: str, page: str) -> Event | None:
        return self._track("phone_call_click", {"phone_number": phone_number, "source": source, "page": page})

    # Funnels and goals

    def funnel_step(
        self,
        funnel_name: str,
        step: int,
        step_name: str,
        data: dict[str, Any] | None = None,
    ) -> Event | None:
        return self._track(
            "funnel_step",
            {"funnel_name": funnel_name, "funnel_step": step, "step_name": step_name, "data": data or {}},
        )

    def goal_completion(
        self,
        goal_name: str,
        goal_category: str,
        value: float | None = None,
        completion_time: float | None = None,
    ) -> Event | None:
        return self._track(
            "goal_completion",
            {
                "goal_name": goal_name,
                "goal_category": goal_category,
                "value": value,
                "completion_time": completion_time,
            },
        )
