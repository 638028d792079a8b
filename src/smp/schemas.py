"""Shared pydantic building blocks: camelCase models, field types, the success envelope."""

from __future__ import annotations

from typing import Annotated, Generic, Literal, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

T = TypeVar("T")

RANKS: tuple[str, ...] = ("E", "D", "C", "B", "A", "S")
Rank = Literal["E", "D", "C", "B", "A", "S"]


def _lower(value: str) -> str:
    return value.lower()


Address = Annotated[
    str,
    StringConstraints(pattern=r"^0x[a-fA-F0-9]{40}$"),
    AfterValidator(_lower),
]
DisplayName = Annotated[
    str,
    StringConstraints(min_length=3, max_length=24, pattern=r"^[a-zA-Z0-9_-]+$"),
]
AvatarId = Annotated[str, StringConstraints(min_length=1)]


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python, readable from ORM rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    """Success envelope ``{"ok": true, "data": ...}``."""

    ok: Literal[True] = True
    data: T


class MessageData(CamelModel):
    message: str


def ok(data: object) -> dict[str, object]:
    """Wrap a payload in the success envelope."""
    return {"ok": True, "data": data}
