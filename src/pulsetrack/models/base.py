"""Base Pydantic models with storage and wire serialization."""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Self

from pydantic import BaseModel as PydanticBaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from ulid import ULID

MS_PER_DAY = 24 * 60 * 60 * 1000


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def generate_uuid() -> str:
    """Generate a new random UUID string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Get current time as epoch milliseconds."""
    return int(time.time() * 1000)


class BaseModel(PydanticBaseModel):
    """Base model for everything that is persisted or sent to the collector.

    Field names are snake_case in Python and camelCase on the wire; both
    spellings are accepted when loading.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_storage(self) -> dict[str, Any]:
        """Serialize model to a JSON-compatible dict using wire aliases."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_storage(cls, item: dict[str, Any]) -> Self:
        """Deserialize a stored dict back into a model instance."""
        return cls.model_validate(item)


class FrozenModel(BaseModel):
    """Immutable variant of BaseModel."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        frozen=True,
    )
