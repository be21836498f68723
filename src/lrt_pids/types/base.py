"""Base model for protocol records and node settings."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StrictBaseModel(BaseModel):
    """
    Immutable pydantic model with strict validation.

    Field values are never coerced: a port given as "4510" or a flag given
    as 1 is rejected. Unknown fields are rejected too.

    Fields serialize under camelCase aliases (`train_number` becomes
    `trainNumber`), the naming used by display vendor tooling. Both spellings
    are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        extra="forbid",
        frozen=True,
        strict=True,
    )
