"""Marketing attribution tracking.

Records one touchpoint per top-level navigation and keeps a rolling,
capped, time-ordered history so both first-touch and last-touch
attribution can be derived.

Campaign parameters (utm_*) win when present. Otherwise the channel is
inferred from the referrer host with a static table, so identical
inputs always classify identically.
"""

from typing import Callable
from urllib.parse import parse_qs, urlparse

import structlog
from pydantic import ValidationError as PydanticValidationError

from pulsetrack.models.base import MS_PER_DAY, now_ms
from pulsetrack.models.touchpoint import LocationSignals, Touchpoint
from pulsetrack.storage.base import KeyValueStore, resilient

logger = structlog.get_logger()

TOUCHPOINTS_KEY = "attribution.touchpoints"

DEFAULT_WINDOW_DAYS = 30
MAX_TOUCHPOINTS = 10

DIRECT_SOURCE = "direct"
NO_MEDIUM = "(none)"
NOT_SET = "(not set)"

# Registrable domain -> source name
SEARCH_ENGINES: dict[str, str] = {
    "google": "google",
    "bing.com": "bing",
    "yahoo.com": "yahoo",
    "duckduckgo.com": "duckduckgo",
    "baidu.com": "baidu",
    "yandex.ru": "yandex",
    "yandex.com": "yandex",
    "ecosia.org": "ecosia",
    "search.brave.com": "brave",
}

SOCIAL_NETWORKS: dict[str, str] = {
    "facebook.com": "facebook",
    "fb.com": "facebook",
    "instagram.com": "instagram",
    "twitter.com": "twitter",
    "x.com": "twitter",
    "t.co": "twitter",
    "linkedin.com": "linkedin",
    "lnkd.in": "linkedin",
    "pinterest.com": "pinterest",
    "tiktok.com": "tiktok",
    "youtube.com": "youtube",
    "reddit.com": "reddit",
    "threads.net": "threads",
}

UTM_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term")


def _host(url: str) -> str:
    host = urlparse(url).hostname or ""
    return host.lower().removeprefix("www.").removeprefix("m.")


def _match_domain(host: str, table: dict[str, str]) -> str | None:
    for domain, name in table.items():
        if "." not in domain:
            # Bare brand names match any country domain (google.co.uk, google.de)
            if host == domain or host.startswith(f"{domain}.") or f".{domain}." in f".{host}":
                return name
            continue
        if host == domain or host.endswith(f".{domain}"):
            return name
    return None


def classify_referrer(referrer: str) -> tuple[str, str]:
    """Infer (source, medium) from a referrer URL.

    Args:
        referrer: Referrer URL, possibly empty.

    Returns:
        Tuple of source and medium.
    """
    host = _host(referrer) if referrer else ""
    if not host:
        return DIRECT_SOURCE, NO_MEDIUM

    engine = _match_domain(host, SEARCH_ENGINES)
    if engine:
        return engine, "organic"

    network = _match_domain(host, SOCIAL_NETWORKS)
    if network:
        return network, "social"

    return host, "referral"


def _campaign_params(url: str) -> dict[str, str]:
    query = parse_qs(urlparse(url).query)
    params = {}
    for name in UTM_PARAMS:
        values = query.get(name)
        if values and values[0].strip():
            params[name] = values[0].strip()
    return params


def build_touchpoint(signals: LocationSignals, timestamp: int) -> Touchpoint | None:
    """Build the touchpoint for a navigation, or None for internal navigation.

    Internal navigation is a click from one page of the site to another:
    no campaign parameters and a referrer whose host equals the page's
    host. Any other referrer host, including one that cannot be compared
    because the page URL has no host, classifies as a referral.
    """
    params = _campaign_params(signals.url)
    if "utm_source" in params:
        return Touchpoint(
            source=params["utm_source"],
            medium=params.get("utm_medium", NO_MEDIUM),
            campaign=params.get("utm_campaign", NOT_SET),
            content=params.get("utm_content"),
            term=params.get("utm_term"),
            timestamp=timestamp,
            page=signals.url,
            referrer=signals.referrer,
        )

    referrer_host = _host(signals.referrer) if signals.referrer else ""
    if referrer_host and referrer_host == _host(signals.url):
        return None

    source, medium = classify_referrer(signals.referrer)
    return Touchpoint(
        source=source,
        medium=medium,
        campaign=params.get("utm_campaign", NOT_SET),
        timestamp=timestamp,
        page=signals.url,
        referrer=signals.referrer,
    )


class AttributionTracker:
    """Rolling touchpoint history for conversion attribution."""

    def __init__(
        self,
        store: KeyValueStore,
        window_days: int = DEFAULT_WINDOW_DAYS,
        max_touchpoints: int = MAX_TOUCHPOINTS,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the tracker.

        Args:
            store: Durable store owning the touchpoint key.
            window_days: Default retention window in days.
            max_touchpoints: Maximum touchpoints kept after each write.
            clock: Returns the current time in epoch milliseconds.
        """
        self.store = resilient(store, "attribution")
        self.window_days = window_days
        self.max_touchpoints = max_touchpoints
        self.clock = clock
        self.logger = logger.bind(service="attribution_tracker")

    def capture_entry_touchpoint(self, signals: LocationSignals | dict) -> Touchpoint | None:
        """Record the touchpoint for a top-level navigation.

        Args:
            signals: Page URL, referrer and title of the navigation.

        Returns:
            The appended touchpoint, or None when the navigation was internal.
        """
        if isinstance(signals, dict):
            signals = LocationSignals.model_validate(signals)

        touchpoint = build_touchpoint(signals, self.clock())
        if touchpoint is None:
            self.logger.debug("Internal navigation, no touchpoint recorded", page=signals.url)
            return None

        touchpoints = self._load()
        touchpoints.append(touchpoint)
        touchpoints = self._prune(touchpoints, self.window_days)
        self._save(touchpoints)

        self.logger.info(
            "Touchpoint captured",
            source=touchpoint.source,
            medium=touchpoint.medium,
            campaign=touchpoint.campaign,
        )
        return touchpoint

    def get_touchpoints(self, window_days: int | None = None) -> list[Touchpoint]:
        """Get touchpoints inside the window, oldest first.

        Args:
            window_days: Window in days. Defaults to the configured window.

        Returns:
            At most ``max_touchpoints`` touchpoints ordered by timestamp.
        """
        return self._prune(self._load(), self.window_days if window_days is None else window_days)

    def first_touch(self, window_days: int | None = None) -> Touchpoint | None:
        """Earliest touchpoint inside the window."""
        touchpoints = self.get_touchpoints(window_days)
        return touchpoints[0] if touchpoints else None

    def last_touch(self, window_days: int | None = None) -> Touchpoint | None:
        """Most recent touchpoint inside the window."""
        touchpoints = self.get_touchpoints(window_days)
        return touchpoints[-1] if touchpoints else None

    def _prune(self, touchpoints: list[Touchpoint], window_days: int) -> list[Touchpoint]:
        cutoff = self.clock() - window_days * MS_PER_DAY
        kept = sorted((tp for tp in touchpoints if tp.timestamp >= cutoff), key=lambda tp: tp.timestamp)
        return kept[-self.max_touchpoints:]

    def _load(self) -> list[Touchpoint]:
        items = self.store.get(TOUCHPOINTS_KEY) or []
        if not isinstance(items, list):
            self.logger.warning("Discarding malformed touchpoint history", value_type=type(items).__name__)
            return []
        touchpoints = []
        for item in items:
            try:
                touchpoints.append(Touchpoint.from_storage(item))
            except PydanticValidationError as e:
                self.logger.warning("Skipping unreadable touchpoint", error=str(e))
        return touchpoints

    def _save(self, touchpoints: list[Touchpoint]) -> None:
        self.store.set(TOUCHPOINTS_KEY, [tp.to_storage() for tp in touchpoints])
