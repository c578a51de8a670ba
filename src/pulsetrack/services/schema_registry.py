"""Event schema registry.

Declares the shape of every named event and decodes untyped property bags
into typed payload models. Validation fails closed: an unknown event name
or a property bag that violates its schema is rejected with a
ValidationError result, never raised into the caller.

Schemas are either EventPayload subclasses or declarative field tables:

    registry.register("video_engagement", {
        "video_title": FieldSpec(type=FieldType.STRING, required=True),
        "action": FieldSpec(type=FieldType.ENUM, options=["play", "pause", "complete"]),
        "video_percent": FieldSpec(type=FieldType.NUMBER),
    })
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    create_model,
    model_validator,
)

from pulsetrack.models.payloads import BUILTIN_PAYLOADS, EventPayload
from pulsetrack.utils.exceptions import ValidationError

logger = structlog.get_logger()


class FieldType(str, Enum):
    """Supported property types for declarative schemas."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ENUM = "enum"
    ARRAY = "array"
    OBJECT = "object"


class FieldSpec(BaseModel):
    """Declarative definition of one event property."""

    type: FieldType = Field(..., description="Property type")
    required: bool = Field(default=False, description="Whether the property must be present")
    options: list[str] = Field(default_factory=list, description="Allowed values for enum properties")
    items: "FieldSpec | None" = Field(default=None, description="Element type for array properties")
    fields: dict[str, "FieldSpec"] = Field(
        default_factory=dict,
        description="Nested properties for object properties",
    )

    @model_validator(mode="after")
    def validate_options(self) -> "FieldSpec":
        """Validate options are provided for enum types."""
        if self.type == FieldType.ENUM and not self.options:
            raise ValueError("Options required for enum field type")
        return self


FieldSpec.model_rebuild()

_PRIMITIVES: dict[FieldType, Any] = {
    FieldType.STRING: str,
    FieldType.NUMBER: float,
    FieldType.INTEGER: int,
    FieldType.BOOLEAN: bool,
}


def _python_type(spec: FieldSpec, model_name: str) -> Any:
    if spec.type in _PRIMITIVES:
        return _PRIMITIVES[spec.type]
    if spec.type == FieldType.ENUM:
        return Literal[tuple(spec.options)]
    if spec.type == FieldType.ARRAY:
        if spec.items is None:
            return list[Any]
        return list[_python_type(spec.items, f"{model_name}Item")]
    if not spec.fields:
        return dict[str, Any]
    return _build_model(model_name, spec.fields, base=_NestedObject)


class _NestedObject(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


def _build_model(name: str, fields: dict[str, FieldSpec], base: type[BaseModel]) -> type[BaseModel]:
    definitions: dict[str, Any] = {}
    for field_name, spec in fields.items():
        py_type = _python_type(spec, f"{name}_{field_name}")
        if spec.required:
            definitions[field_name] = (py_type, ...)
        else:
            definitions[field_name] = (py_type | None, None)
    return create_model(name, __base__=base, **definitions)


def build_payload_model(event_name: str, fields: dict[str, FieldSpec]) -> type[EventPayload]:
    """Compile a declarative field table into an EventPayload model."""
    model_name = "".join(part.capitalize() for part in event_name.split("_")) + "Payload"
    return _build_model(model_name, fields, base=EventPayload)


@dataclass(frozen=True)
class SchemaEntry:
    """A registered event schema."""

    name: str
    model: type[EventPayload]
    include_attribution: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating an event against its schema."""

    ok: bool
    payload: EventPayload | None = None
    error: ValidationError | None = None
    schema: SchemaEntry | None = None

    @property
    def properties(self) -> dict[str, Any]:
        """Validated properties, or an empty dict when rejected."""
        return self.payload.to_properties() if self.payload is not None else {}


class SchemaRegistry:
    """Registry of event schemas keyed by event name."""

    def __init__(self):
        self._schemas: dict[str, SchemaEntry] = {}
        self.logger = logger.bind(service="schema_registry")

    def register(
        self,
        name: str,
        schema: type[EventPayload] | dict[str, FieldSpec | dict],
        include_attribution: bool | None = None,
    ) -> SchemaEntry:
        """Register or replace the schema for an event name.

        Args:
            name: Event name.
            schema: EventPayload subclass or declarative field table.
            include_attribution: Whether events of this type carry the
                current touchpoints. Defaults to the payload model's
                ``include_attribution`` class flag.

        Returns:
            The registered schema entry.
        """
        if isinstance(schema, dict):
            fields = {
                field_name: spec if isinstance(spec, FieldSpec) else FieldSpec.model_validate(spec)
                for field_name, spec in schema.items()
            }
            model = build_payload_model(name, fields)
        elif isinstance(schema, type) and issubclass(schema, EventPayload):
            model = schema
        else:
            raise TypeError(f"Unsupported schema for '{name}': {schema!r}")

        if include_attribution is None:
            include_attribution = model.include_attribution

        entry = SchemaEntry(name=name, model=model, include_attribution=include_attribution)
        self._schemas[name] = entry
        self.logger.debug("Schema registered", event_name=name, model=model.__name__)
        return entry

    def register_payload(self, model: type[EventPayload]) -> SchemaEntry:
        """Register a payload model under its declared event name."""
        if not model.event_name:
            raise ValueError(f"{model.__name__} does not declare an event_name")
        return self.register(model.event_name, model)

    def get(self, name: str) -> SchemaEntry | None:
        return self._schemas.get(name)

    def is_registered(self, name: str) -> bool:
        return name in self._schemas

    @property
    def event_names(self) -> list[str]:
        return sorted(self._schemas)

    def validate(
        self,
        name: str,
        properties: dict[str, Any] | EventPayload | None,
    ) -> ValidationResult:
        """Validate a property bag against the schema registered for ``name``.

        Never raises; failures come back as ``ValidationResult(ok=False)``.
        """
        entry = self._schemas.get(name)
        if entry is None:
            return ValidationResult(ok=False, error=ValidationError.unknown_event(name))

        if isinstance(properties, EventPayload):
            if not isinstance(properties, entry.model):
                return ValidationResult(
                    ok=False,
                    error=ValidationError(
                        message=f"Payload {type(properties).__name__} does not match event '{name}'",
                        event_name=name,
                    ),
                    schema=entry,
                )
            return ValidationResult(ok=True, payload=properties, schema=entry)

        if properties is not None and not isinstance(properties, dict):
            return ValidationResult(
                ok=False,
                error=ValidationError(message="Event properties must be a mapping", event_name=name),
                schema=entry,
            )

        try:
            payload = entry.model.model_validate(properties or {})
        except PydanticValidationError as e:
            return ValidationResult(ok=False, error=ValidationError.from_pydantic(e, event_name=name), schema=entry)

        return ValidationResult(ok=True, payload=payload, schema=entry)


def default_registry() -> SchemaRegistry:
    """Create a registry with every built-in event registered."""
    registry = SchemaRegistry()
    for model in BUILTIN_PAYLOADS:
        registry.register_payload(model)
    return registry
