"""Profile model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict


class SocialLinkData(TypedDict):
    """A single {title, url} entry of the socialLinks column."""

    title: str
    url: str


class Profile(TypedDict):
    """users table row representation.

    Keys follow the RETURNING projection of the update statement, so the
    stream key and social links use their camelCase aliases.
    """

    id: int
    wallet: str
    username: str | None
    email: str | None
    avatar: str | None
    bio: str | None
    streamKey: str | None
    socialLinks: list[SocialLinkData] | str | None
    updated_at: datetime


class ProfileUpdate(TypedDict, total=False):
    """Fields that can be updated on a profile.

    All fields are optional; a missing key means the column is left untouched.
    The wallet address is never updatable.
    """

    username: str
    email: str
    avatar: str
    bio: str
    streamKey: str
    socialLinks: list[SocialLinkData]
