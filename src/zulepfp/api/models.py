"""Pydantic request models for the Zule PFP API.

FastAPI uses these for request validation and OpenAPI documentation.
Field names follow the JSON the web client sends (camelCase aliases).

Models
------
Trait
    One ``{trait_type, value}`` pair of an NFT-style trait list.
GenerateImageRequest
    Payload for ``POST /api/generate-image``.  Either ``traits`` or the
    structured avatar fields (``inscription``, ``hatColor``, ``gender``,
    ``description``, ``customColor``) drive the prompt.
NewsletterRequest
    Payload for ``POST /api/newsletter``.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


class Trait(BaseModel):
    """A single trait entry.

    Unknown keys are preserved so they reach the prompt unchanged.
    """

    model_config = ConfigDict(extra="allow")

    trait_type: str | None = Field(
        default=None,
        description="Trait category, e.g. 'Hat' or 'Background'.",
    )
    value: str | int | float | None = Field(
        default=None,
        description="Trait value, e.g. 'Alien Hat'.",
    )


class GenerateImageRequest(BaseModel):
    """Request body for ``POST /api/generate-image``.

    Attributes:
        username: Owner of the generated picture (gallery dedup key).
        traits: Trait list for the sketch-character style.  Takes
            precedence over the structured fields when present.
        inscription: Text printed on the avatar's hat.
        hat_color: Hat color (``hatColor``).
        gender: ``female``, ``male`` or ``neutral``.
        description: Free-text personalisation.
        custom_color: Optional color override (``customColor``).
    """

    model_config = ConfigDict(populate_by_name=True)

    username: str | None = Field(default=None, max_length=100)
    traits: list[Trait] | None = Field(default=None)
    inscription: str | None = Field(default=None, max_length=64)
    hat_color: str | None = Field(default=None, alias="hatColor", max_length=64)
    gender: str | None = Field(default=None, max_length=32)
    description: str | None = Field(default=None, max_length=1000)
    custom_color: str | None = Field(default=None, alias="customColor", max_length=64)

    def uses_traits(self) -> bool:
        return self.traits is not None

    def trait_dicts(self) -> list[dict]:
        return [t.model_dump(exclude_unset=True) for t in self.traits or []]


class NewsletterRequest(BaseModel):
    """Request body for ``POST /api/newsletter``."""

    email: str | None = Field(default=None, description="Subscriber email address.")

    def is_valid_email(self) -> bool:
        return bool(self.email and EMAIL_PATTERN.match(self.email.strip()))
