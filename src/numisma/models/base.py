"""Shared pydantic configuration for domain models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DomainModel(BaseModel):
    """Base model accepting both snake_case and camelCase field names.

    Exported data uses camelCase keys (``dateOpen``, ``totalCost``); Python
    code uses snake_case. Instances are frozen: mutations go through
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )
