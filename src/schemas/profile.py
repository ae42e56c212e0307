"""Profile Pydantic schemas for API request/response models."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SocialLink(BaseModel):
    """A labelled link shown on a user's profile."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(description="Link label, e.g. 'Twitter'")
    url: str = Field(description="Link target")


class ProfileResponse(BaseModel):
    """Schema for a users row as returned after an update.

    The row is echoed as the database returned it. Columns not listed here
    are passed through unchanged.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="allow")

    id: Any = Field(description="Row identifier")
    wallet: str = Field(description="Wallet address identifying the user")
    username: str | None = Field(default=None, description="Display name")
    email: str | None = Field(default=None, description="Contact email address")
    avatar: str | None = Field(default=None, description="Public URL of the avatar image")
    bio: str | None = Field(default=None, description="Biography text")
    stream_key: str | None = Field(default=None, alias="streamKey", description="Secret stream key")
    social_links: Any = Field(
        default=None, alias="socialLinks", description="Social links, normally a list of {title, url}"
    )
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")

    @field_validator("social_links", mode="before")
    @classmethod
    def decode_social_links(cls, value: Any) -> Any:
        """Decode social links stored as JSON text, leaving other text as is."""
        if isinstance(value, (str, bytes)):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value


class ProfileUpdateResponse(BaseModel):
    """Response body for a successful profile update."""

    message: str = Field(default="User updated successfully", description="Outcome message")
    user: ProfileResponse = Field(description="The updated profile row")
