"""Profile business logic service."""

import logging
from typing import Mapping

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import UploadFile

from src.api.middleware.error_handler import (
    APIError,
    DeleteFailedError,
    InvalidSocialLinksError,
    NoFieldsProvidedError,
    NotFoundError,
    PersistenceError,
)
from src.core.database import get_engine
from src.models.profile import Profile, ProfileUpdate
from src.schemas.profile import SocialLink
from src.services.image_store import ImageStore, UploadedAsset, get_image_store
from src.services.profile_update_builder import PROFILE_TABLE, build_profile_update

logger = logging.getLogger(__name__)

# Form fields copied verbatim into the update
TEXT_FIELDS = ("username", "email", "bio", "streamKey")

# Every text field the update form may carry
PROFILE_FORM_FIELDS = TEXT_FIELDS + ("socialLinks",)

_social_links_adapter = TypeAdapter(list[SocialLink])


def parse_social_links(raw: str) -> list[SocialLink]:
    """Decode the socialLinks form value.

    Args:
        raw: JSON text of an array of {title, url} objects.

    Returns:
        list[SocialLink]: Links in submitted order.

    Raises:
        InvalidSocialLinksError: If the text is not JSON or not a list of links.
    """
    try:
        return _social_links_adapter.validate_json(raw)
    except ValidationError as e:
        raise InvalidSocialLinksError() from e


def collect_profile_fields(form_fields: Mapping[str, str]) -> ProfileUpdate:
    """Build the update field set from submitted text fields.

    Blank values are treated as not supplied.

    Args:
        form_fields: Text values from the request form.

    Returns:
        ProfileUpdate: Only the fields the caller supplied.
    """
    fields: ProfileUpdate = {}

    for name in TEXT_FIELDS:
        value = form_fields.get(name)
        if value:
            fields[name] = value

    raw_links = form_fields.get("socialLinks")
    if raw_links:
        fields["socialLinks"] = [link.model_dump() for link in parse_social_links(raw_links)]

    return fields


class ProfileService:
    """Service for updating user profiles keyed by wallet address."""

    def __init__(self, image_store: ImageStore | None = None) -> None:
        """Initialize profile service with the database engine and image store.

        Args:
            image_store: Optional image store, defaults to the shared instance.
        """
        self.engine = get_engine()
        self.image_store = image_store or get_image_store()

    async def profile_exists(self, wallet: str) -> bool:
        """Check whether a profile exists for a wallet.

        Args:
            wallet: The wallet address.

        Returns:
            bool: True if a users row has this wallet.

        Raises:
            PersistenceError: If the database cannot be queried.
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(
                    text(f"SELECT EXISTS(SELECT 1 FROM {PROFILE_TABLE} WHERE wallet = :wallet)"),
                    {"wallet": wallet},
                )
                return bool(result.scalar())
        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to look up profile for wallet %s: %s", wallet, e)
            raise PersistenceError() from e

    async def update_profile(
        self,
        wallet: str,
        form_fields: Mapping[str, str],
        avatar: UploadFile | None = None,
    ) -> Profile:
        """Apply a partial update to a profile.

        Nothing is persisted unless every prior step succeeds. If the avatar
        was uploaded but the write fails, the uploaded image is deleted again.

        Args:
            wallet: The wallet address of the profile to update.
            form_fields: Text values from the request form.
            avatar: Optional uploaded avatar image.

        Returns:
            Profile: The updated users row.

        Raises:
            NotFoundError: If no profile exists for the wallet.
            InvalidSocialLinksError: If socialLinks is malformed.
            UploadFailedError: If the avatar upload fails.
            NoFieldsProvidedError: If nothing was supplied to update.
            PersistenceError: If the database write fails.
        """
        if not await self.profile_exists(wallet):
            raise NotFoundError("User not found")

        fields = collect_profile_fields(form_fields)

        asset: UploadedAsset | None = None
        if avatar is not None:
            asset = await self._upload_avatar(avatar)
            if asset is not None:
                fields["avatar"] = asset.url

        if not fields:
            raise NoFieldsProvidedError()

        try:
            return await self._persist(wallet, fields)
        except APIError:
            if asset is not None:
                await self._discard_asset(asset)
            raise

    async def _upload_avatar(self, avatar: UploadFile) -> UploadedAsset | None:
        """Upload the avatar file and release it.

        Returns:
            UploadedAsset | None: The stored image, or None if the part was empty.
        """
        try:
            data = await avatar.read()
            if not data:
                return None
            return await self.image_store.upload(data)
        finally:
            await avatar.close()

    async def _persist(self, wallet: str, fields: ProfileUpdate) -> Profile:
        """Execute the update statement in a single transaction."""
        statement = build_profile_update(wallet, fields)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(statement.sql), statement.params)
                row = result.mappings().first()
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "Failed to update profile for wallet %s (columns=%s): %s",
                wallet,
                statement.columns,
                e,
            )
            raise PersistenceError() from e

        if row is None:
            raise NotFoundError("User not found")

        logger.info("Updated profile for wallet %s (columns=%s)", wallet, statement.columns)
        return dict(row)

    async def _discard_asset(self, asset: UploadedAsset) -> None:
        """Delete an uploaded avatar that never reached the database."""
        try:
            await self.image_store.delete_by_public_id(asset.public_id)
        except DeleteFailedError:
            logger.error("Orphaned avatar left in image store: %s", asset.public_id)
        else:
            logger.warning("Removed avatar %s after failed profile update", asset.public_id)

