"""Built-in provider adapters.

Each adapter wraps the host's handle to a third-party SDK (a data layer
list, a ``gtag`` function, a pixel ``fbq`` function, a session-replay
annotation function) and translates pipeline events into that SDK's call
shape.
"""

from typing import Any, Callable

from pulsetrack.config import ProviderConfig, ProviderType
from pulsetrack.integrations.base_provider import BaseProvider

# Pipeline event -> pixel standard event
PIXEL_STANDARD_EVENTS: dict[str, str] = {
    "purchase": "Purchase",
    "add_to_cart": "AddToCart",
    "begin_checkout": "InitiateCheckout",
    "newsletter_signup": "Subscribe",
    "contact_form_submit": "Lead",
    "page_view": "PageView",
}


class CallableProvider(BaseProvider):
    """Calls ``handler(event_name, properties)``."""

    def __init__(self, config: ProviderConfig, handler: Callable[[str, dict[str, Any]], Any]):
        super().__init__(config)
        self.handler = handler

    def report(self, event_name: str, properties: dict[str, Any]) -> None:
        self.handler(event_name, properties)


class DataLayerProvider(BaseProvider):
    """Pushes ``{"event": name, **properties}`` onto a tag-manager data layer."""

    def __init__(self, config: ProviderConfig, data_layer: list | Callable[[dict[str, Any]], Any]):
        super().__init__(config)
        self.push = data_layer.append if isinstance(data_layer, list) else data_layer

    def report(self, event_name: str, properties: dict[str, Any]) -> None:
        self.push({"event": event_name, **properties})


class GtagProvider(BaseProvider):
    """Calls ``gtag("event", name, properties)``."""

    def __init__(self, config: ProviderConfig, gtag: Callable[..., Any]):
        super().__init__(config)
        self.gtag = gtag

    def report(self, event_name: str, properties: dict[str, Any]) -> None:
        self.gtag("event", event_name, properties)


class PixelProvider(BaseProvider):
    """Calls ``fbq("track", StandardEvent, params)`` or ``trackCustom``."""

    def __init__(self, config: ProviderConfig, fbq: Callable[..., Any]):
        super().__init__(config)
        self.fbq = fbq
        self.event_map = {**PIXEL_STANDARD_EVENTS, **config.options.get("event_map", {})}

    def report(self, event_name: str, properties: dict[str, Any]) -> None:
        standard = self.event_map.get(event_name)
        if standard is None:
            self.fbq("trackCustom", event_name, properties)
            return
        self.fbq("track", standard, _pixel_params(properties))


def _pixel_params(properties: dict[str, Any]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if "value" in properties:
        params["value"] = properties["value"]
    if "currency" in properties:
        params["currency"] = properties["currency"]

    items = properties.get("items") or []
    if items:
        params["content_type"] = "product"
        params["content_ids"] = [item["item_id"] for item in items]
        params["num_items"] = sum(item.get("quantity", 1) for item in items)

    if "form_name" in properties:
        params["content_name"] = properties["form_name"]
    if "inquiry_type" in properties:
        params["content_category"] = properties["inquiry_type"]
    return params


class SessionReplayProvider(BaseProvider):
    """Annotates a session recording with the event name."""

    def __init__(self, config: ProviderConfig, annotate: Callable[..., Any]):
        super().__init__(config)
        self.annotate = annotate

    def report(self, event_name: str, properties: dict[str, Any]) -> None:
        self.annotate("event", event_name)


PROVIDER_CLASSES: dict[ProviderType, type[BaseProvider]] = {
    ProviderType.DATA_LAYER: DataLayerProvider,
    ProviderType.GTAG: GtagProvider,
    ProviderType.PIXEL: PixelProvider,
    ProviderType.SESSION_REPLAY: SessionReplayProvider,
    ProviderType.CALLABLE: CallableProvider,
}


def build_provider(config: ProviderConfig, handle: Any) -> BaseProvider:
    """Create the adapter for a provider config around the host's SDK handle."""
    return PROVIDER_CLASSES[ProviderType(config.type)](config, handle)
