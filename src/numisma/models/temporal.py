"""Temporal values: an absolute timestamp or the *genesis* marker.

Genesis means "this happened before tracking began, the real date is
unknown". It is a separate variant rather than a magic string so callers
have to handle it explicitly:

- it sorts before every absolute timestamp,
- it has no duration (``elapsed`` returns ``None``),
- it is never formatted as a date.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, PlainSerializer

GENESIS_LITERAL = "genesis"


class Genesis(BaseModel):
    """Marker for records that predate tracking."""

    kind: Literal["genesis"] = "genesis"

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return "Genesis"


class Absolute(BaseModel):
    """A known point in time."""

    kind: Literal["absolute"] = "absolute"
    timestamp: datetime

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return self.timestamp.isoformat()


GENESIS = Genesis()


def parse_temporal(value: Any) -> Union[Absolute, Genesis]:
    """Coerce raw input into a temporal variant.

    Accepts an existing variant, a ``datetime``, an ISO-8601 string, the
    string ``"genesis"``, or a ``{"kind": ...}`` mapping.

    Raises:
        ValueError: If the value cannot be interpreted.
    """
    if isinstance(value, (Absolute, Genesis)):
        return value
    if isinstance(value, datetime):
        return Absolute(timestamp=value)
    if isinstance(value, str):
        if value.strip().lower() == GENESIS_LITERAL:
            return GENESIS
        return Absolute(timestamp=datetime.fromisoformat(value))
    if isinstance(value, dict):
        if value.get("kind") == GENESIS_LITERAL:
            return GENESIS
        return Absolute.model_validate(value)
    raise ValueError(f"Not a temporal value: {value!r}")


def _serialize_temporal(value: Union[Absolute, Genesis]) -> str:
    if isinstance(value, Genesis):
        return GENESIS_LITERAL
    return value.timestamp.isoformat()


TemporalValue = Annotated[
    Union[Absolute, Genesis],
    BeforeValidator(parse_temporal),
    PlainSerializer(_serialize_temporal, return_type=str),
]


def is_genesis(value: Optional[Union[Absolute, Genesis]]) -> bool:
    """Whether *value* is the genesis marker."""
    return isinstance(value, Genesis)


def as_utc(moment: datetime) -> datetime:
    """Normalize a datetime to UTC; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def temporal_sort_key(value: Optional[Union[Absolute, Genesis]]) -> tuple[int, float]:
    """Sort key placing genesis first, then absolute times, then unknown (``None``)."""
    if isinstance(value, Genesis):
        return (0, 0.0)
    if isinstance(value, Absolute):
        return (1, as_utc(value.timestamp).timestamp())
    return (2, 0.0)


def elapsed(
    start: Optional[Union[Absolute, Genesis]],
    end: Optional[Union[Absolute, Genesis]],
) -> Optional[timedelta]:
    """Duration between two temporal values, or ``None`` if either is not absolute."""
    if not isinstance(start, Absolute) or not isinstance(end, Absolute):
        return None
    return as_utc(end.timestamp) - as_utc(start.timestamp)


_FORMATS = {
    "short": "%Y-%m-%d",
    "medium": "%Y-%m-%d %H:%M",
    "long": "%A, %B %d, %Y %H:%M",
}


def format_temporal(value: Optional[Union[Absolute, Genesis]], style: str = "medium") -> str:
    """Human-readable rendering used by the CLI."""
    if value is None:
        return "N/A"
    if isinstance(value, Genesis):
        return "Genesis"
    return value.timestamp.strftime(_FORMATS.get(style, _FORMATS["medium"]))
