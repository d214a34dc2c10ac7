"""Shared pydantic base and response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python. Reads ORM rows directly."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    success: bool = True
    message: str


def check_http_url(value: str | None) -> str | None:
    """Blank means no URL; otherwise it must be http(s)."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not value.lower().startswith(("http://", "https://")):
        msg = "Image URL must start with http:// or https://"
        raise ValueError(msg)
    if len(value) > 500:
        msg = "Image URL must be at most 500 characters"
        raise ValueError(msg)
    return value
