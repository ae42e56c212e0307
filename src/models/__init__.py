"""Database model type definitions."""

from src.models.profile import Profile, ProfileUpdate, SocialLinkData

__all__ = [
    "Profile",
    "ProfileUpdate",
    "SocialLinkData",
]
