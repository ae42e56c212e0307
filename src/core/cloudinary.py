"""Cloudinary SDK configuration."""

import logging
from typing import Any

import cloudinary

from src.core.config import get_settings

logger = logging.getLogger(__name__)


def configure_cloudinary() -> None:
    """Configure the Cloudinary SDK with credentials from settings.

    This should be called once at application startup.
    If credentials are not configured, uploads will fail with clear errors.
    """
    settings = get_settings()
    if settings.is_cloudinary_configured:
        cloudinary.config(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            secure=True,
        )
    else:
        logger.warning("Cloudinary credentials not configured. Avatar uploads will not work.")


def check_cloudinary_configuration() -> dict[str, Any]:
    """Report whether the image store can be used.

    Returns:
        dict: Status with 'healthy' boolean and optional 'error' message.
    """
    if get_settings().is_cloudinary_configured:
        return {"healthy": True}
    return {"healthy": False, "error": "Cloudinary credentials not configured"}
