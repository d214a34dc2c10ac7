"""Request/response models for the preset prize catalog."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from cointoss.schemas import CamelModel, check_http_url


class PrizeOut(CamelModel):
    id: int
    name: str
    description: str
    image_url: str | None = None
    is_default: bool
    is_active: bool
    requires_address: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PrizeCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    image_url: str | None = None
    is_default: bool = False
    is_active: bool = True
    requires_address: bool = False

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, value: str | None) -> str | None:
        return check_http_url(value)


class PrizeUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    image_url: str | None = None
    is_default: bool | None = None
    is_active: bool | None = None
    requires_address: bool | None = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, value: str | None) -> str | None:
        return check_http_url(value)


class PrizeListResponse(CamelModel):
    success: bool = True
    prizes: list[PrizeOut]


class PrizeResponse(CamelModel):
    success: bool = True
    message: str
    prize: PrizeOut


class DefaultPrizeResponse(CamelModel):
    success: bool = True
    default_prize: PrizeOut | None = None
