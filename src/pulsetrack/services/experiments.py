"""Deterministic A/B test variant assignment.

Visitors are bucketed client-side by hashing ``test_name:visitor_id``
into [0, 1) and walking the cumulative weight distribution. The hash is
the source of truth: losing the assignment cache never changes the
outcome for the same inputs. The cache keeps a visitor on its first
variant even if the candidate list changes mid-test, and doubles as an
audit trail.

The rolling hash is for uniform bucketing only. It is not a security
property and adversarial visitor ids can skew it.
"""

from typing import Any, Callable

import structlog
from pydantic import ValidationError as PydanticValidationError

from pulsetrack.models.assignment import VariantAssignment, assignment_key
from pulsetrack.models.base import now_ms
from pulsetrack.models.payloads import ABTestAssignmentPayload, ABTestConversionPayload
from pulsetrack.storage.base import KeyValueStore, resilient

logger = structlog.get_logger()

ASSIGNMENTS_KEY = "experiments.assignments"
DEFAULT_VARIANT = "control"

_HASH_MODULUS = 2**32


def rolling_hash(key: str) -> int:
    """32-bit polynomial rolling hash (base 31) of a string."""
    value = 0
    for char in key:
        value = (value * 31 + ord(char)) % _HASH_MODULUS
    return value


def normalized_hash(key: str) -> float:
    """Map a key to a float in [0, 1)."""
    return rolling_hash(key) / _HASH_MODULUS


def normalize_weights(variants: list[str], weights: list[float] | None) -> list[float]:
    """Return weights that sum to 1, falling back to a uniform split.

    Missing weights, a length mismatch, negative values or a non-positive
    total all produce the uniform split.
    """
    count = len(variants)
    uniform = [1 / count] * count
    if weights is None:
        return uniform

    if len(weights) != count or any(w < 0 for w in weights):
        logger.warning("Invalid experiment weights, using uniform split", variants=variants, weights=weights)
        return uniform

    total = sum(weights)
    if total <= 0:
        logger.warning("Experiment weights sum to zero, using uniform split", variants=variants)
        return uniform

    return [w / total for w in weights]


def select_variant(value: float, variants: list[str], weights: list[float]) -> str:
    """Pick the first variant whose cumulative weight exceeds ``value``.

    A value sitting exactly on a cumulative boundary belongs to the next
    variant. Rounding that leaves the total just under 1 falls through to
    the last variant.
    """
    cumulative = 0.0
    for variant, weight in zip(variants, weights):
        cumulative += weight
        if cumulative > value:
            return variant
    return variants[-1]


def bucket(key: str, variants: list[str], weights: list[float] | None = None) -> str:
    """Deterministically map a lookup key to one of ``variants``."""
    if not variants:
        return DEFAULT_VARIANT
    return select_variant(normalized_hash(key), variants, normalize_weights(variants, weights))


class AssignmentEngine:
    """Assigns visitors to experiment variants and remembers the decision."""

    def __init__(
        self,
        store: KeyValueStore,
        visitor_id: str | Callable[[], str],
        emit: Callable[[str, dict[str, Any]], Any] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the engine.

        Args:
            store: Durable store owning the assignment cache key.
            visitor_id: Visitor id, or a callable returning it.
            emit: Event sink called as ``emit(name, properties)``.
            clock: Returns the current time in epoch milliseconds.
        """
        self.store = resilient(store, "experiments")
        self._visitor_id = visitor_id
        self.emit = emit
        self.clock = clock
        self.logger = logger.bind(service="assignment_engine")

    @property
    def visitor_id(self) -> str:
        return self._visitor_id() if callable(self._visitor_id) else self._visitor_id

    def get_variant(
        self,
        test_name: str,
        variants: list[str],
        weights: list[float] | None = None,
    ) -> str:
        """Get the visitor's variant for a test, assigning one if needed.

        Args:
            test_name: Experiment name.
            variants: Candidate variants.
            weights: Optional relative weights, one per variant.

        Returns:
            The cached variant if one exists, otherwise the freshly
            bucketed variant.
        """
        visitor_id = self.visitor_id
        key = assignment_key(test_name, visitor_id)

        assignments = self._load()
        cached = assignments.get(key)
        if cached is not None:
            return cached.variant

        if not variants:
            self.logger.warning("Experiment has no variants", test_name=test_name)
            return DEFAULT_VARIANT

        variant = bucket(key, variants, weights)
        assignment = VariantAssignment(
            test_name=test_name,
            visitor_id=visitor_id,
            variant=variant,
            assigned_at=self.clock(),
        )
        assignments[key] = assignment
        self._save(assignments)

        self.logger.info("Variant assigned", test_name=test_name, variant=variant)
        self._emit(ABTestAssignmentPayload(test_name=test_name, variant=variant))
        return variant

    def get_assignment(self, test_name: str) -> VariantAssignment | None:
        """Get the cached assignment for a test, if any."""
        return self._load().get(assignment_key(test_name, self.visitor_id))

    def get_assignments(self) -> list[VariantAssignment]:
        """Get every cached assignment, oldest first."""
        return sorted(self._load().values(), key=lambda a: a.assigned_at)

    def record_conversion(self, test_name: str, value: float | None = None) -> bool:
        """Emit a conversion for the visitor's assigned variant.

        Returns:
            False when the visitor was never assigned to the test.
        """
        assignment = self.get_assignment(test_name)
        if assignment is None:
            self.logger.debug("Conversion for unassigned test ignored", test_name=test_name)
            return False

        self._emit(ABTestConversionPayload(test_name=test_name, variant=assignment.variant, value=value))
        return True

    def _emit(self, payload: ABTestAssignmentPayload | ABTestConversionPayload) -> None:
        if self.emit is not None:
            self.emit(payload.event_name, payload.to_properties())

    def _load(self) -> dict[str, VariantAssignment]:
        items = self.store.get(ASSIGNMENTS_KEY) or {}
        if not isinstance(items, dict):
            self.logger.warning("Discarding malformed assignment cache", value_type=type(items).__name__)
            return {}
        assignments = {}
        for key, item in items.items():
            try:
                assignments[key] = VariantAssignment.from_storage(item)
            except PydanticValidationError as e:
                self.logger.warning("Skipping unreadable assignment", key=key, error=str(e))
        return assignments

    def _save(self, assignments: dict[str, VariantAssignment]) -> None:
        self.store.set(ASSIGNMENTS_KEY, {key: a.to_storage() for key, a in assignments.items()})
