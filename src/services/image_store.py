"""Avatar image storage backed by Cloudinary."""

import logging
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

import cloudinary.uploader
from starlette.concurrency import run_in_threadpool

from src.api.middleware.error_handler import (
    DeleteFailedError,
    InvalidReferenceError,
    UploadFailedError,
)
from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Path segment that precedes the version marker in Cloudinary delivery URLs
UPLOAD_PATH_MARKER = "upload"

# destroy() results that mean the asset is gone
DESTROYED_RESULTS = {"ok", "not found"}


@dataclass(frozen=True)
class UploadedAsset:
    """An image held by the store."""

    url: str
    public_id: str


def extract_public_id_from_url(url: str) -> str:
    """Derive the Cloudinary public ID from a delivery URL.

    Example:
        https://res.cloudinary.com/demo/image/upload/v1712345678/user_avatars/abc123.jpg
        -> user_avatars/abc123

    Args:
        url: Delivery URL of an uploaded asset.

    Returns:
        str: The public ID naming the asset.

    Raises:
        InvalidReferenceError: If the URL has no upload segment or nothing after the version.
    """
    try:
        path = urlparse(url).path
    except ValueError as e:
        raise InvalidReferenceError() from e

    parts = path.split("/")
    if UPLOAD_PATH_MARKER not in parts:
        raise InvalidReferenceError()

    upload_index = parts.index(UPLOAD_PATH_MARKER)
    # Skip the version segment that follows the marker
    public_id_parts = [unquote(part) for part in parts[upload_index + 2:]]
    if not public_id_parts or not public_id_parts[-1]:
        raise InvalidReferenceError()

    last = public_id_parts[-1]
    if "." in last:
        public_id_parts[-1] = last[: last.rindex(".")]

    return "/".join(public_id_parts)


class ImageStore:
    """Uploads and deletes images in Cloudinary.

    The Cloudinary SDK is configured once at startup (see
    ``src.core.cloudinary.configure_cloudinary``) and keeps no per-request
    state, so a single instance is shared by all requests.
    """

    def __init__(self, folder: str | None = None) -> None:
        """Initialize the image store.

        Args:
            folder: Cloudinary folder for uploads. Defaults to the configured avatar folder.
        """
        self.folder = folder or get_settings().cloudinary_avatar_folder

    async def upload(self, data: bytes, folder: str | None = None) -> UploadedAsset:
        """Upload image bytes.

        Args:
            data: Raw image content.
            folder: Optional folder overriding the store default.

        Returns:
            UploadedAsset: Secure URL and public ID of the stored image.

        Raises:
            UploadFailedError: If Cloudinary rejects the upload or cannot be reached.
        """
        target_folder = folder or self.folder
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                data,
                folder=target_folder,
                resource_type="image",
            )
        except Exception as e:
            logger.error("Error uploading to Cloudinary (folder=%s): %s", target_folder, e)
            raise UploadFailedError() from e

        secure_url = result.get("secure_url")
        public_id = result.get("public_id")
        if not secure_url or not public_id:
            logger.error("Cloudinary upload returned no secure_url/public_id: %s", result)
            raise UploadFailedError()

        logger.info("Uploaded image %s", public_id)
        return UploadedAsset(url=secure_url, public_id=public_id)

    async def delete(self, url: str) -> None:
        """Delete an image identified by its delivery URL.

        Args:
            url: URL previously returned by ``upload``.

        Raises:
            InvalidReferenceError: If no public ID can be derived from the URL.
            DeleteFailedError: If Cloudinary fails to delete the image.
        """
        public_id = extract_public_id_from_url(url)
        await self.delete_by_public_id(public_id)

    async def delete_by_public_id(self, public_id: str) -> None:
        """Delete an image by its Cloudinary public ID.

        Args:
            public_id: Identifier returned at upload time.

        Raises:
            DeleteFailedError: If Cloudinary fails to delete the image.
        """
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.destroy, public_id, resource_type="image"
            )
        except Exception as e:
            logger.error("Error deleting %s from Cloudinary: %s", public_id, e)
            raise DeleteFailedError() from e

        outcome = result.get("result")
        if outcome not in DESTROYED_RESULTS:
            logger.error("Cloudinary refused to delete %s: %s", public_id, result)
            raise DeleteFailedError()
        if outcome == "not found":
            logger.warning("Image %s was already absent from Cloudinary", public_id)
        else:
            logger.info("Deleted image %s", public_id)


# Singleton instance
_image_store: ImageStore | None = None


def get_image_store() -> ImageStore:
    """Get or create the image store singleton."""
    global _image_store
    if _image_store is None:
        _image_store = ImageStore()
    return _image_store
