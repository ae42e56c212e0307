"""User profile API routes."""

import logging

from fastapi import APIRouter, Request
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from src.api.deps import resolve_wallet
from src.api.middleware.error_handler import MalformedRequestError
from src.schemas.profile import ProfileResponse, ProfileUpdateResponse
from src.services.profile_service import PROFILE_FORM_FIELDS, ProfileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _form_text(form: FormData, name: str) -> str | None:
    """Return the first text value submitted under ``name``."""
    for value in form.getlist(name):
        if isinstance(value, str):
            return value
    return None


def _form_file(form: FormData, name: str) -> UploadFile | None:
    """Return the first file part submitted under ``name``."""
    for value in form.getlist(name):
        if isinstance(value, UploadFile):
            return value
    return None


@router.api_route(
    "/update",
    methods=["PUT", "PATCH"],
    response_model=ProfileUpdateResponse,
    summary="Update a user's profile",
    description=(
        "Partially updates the profile identified by wallet address. Accepts a "
        "multipart form with optional username, email, bio, streamKey, "
        "socialLinks (JSON array of {title, url}) and an avatar image file."
    ),
    responses={
        400: {"description": "Missing wallet, malformed form or socialLinks, or nothing to update"},
        404: {"description": "User not found"},
        405: {"description": "Method not allowed"},
        500: {"description": "Avatar upload or database update failed"},
    },
)
async def update_user(request: Request) -> ProfileUpdateResponse:
    """Update the profile of the user identified by wallet.

    The wallet is taken from the ``wallet`` query parameter, then the
    Authorization header, then the ``wallet`` form field.

    Args:
        request: The incoming multipart request.

    Returns:
        ProfileUpdateResponse: Success message and the updated row.
    """
    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        logger.warning("Could not parse update form: %s", e)
        raise MalformedRequestError() from e

    try:
        wallet = resolve_wallet(
            query_wallet=request.query_params.get("wallet"),
            authorization=request.headers.get("authorization"),
            form_wallet=_form_text(form, "wallet"),
        )

        form_fields: dict[str, str] = {}
        for name in PROFILE_FORM_FIELDS:
            value = _form_text(form, name)
            if value is not None:
                form_fields[name] = value

        service = ProfileService()
        user = await service.update_profile(
            wallet=wallet,
            form_fields=form_fields,
            avatar=_form_file(form, "avatar"),
        )
    finally:
        # Releases spooled temp files for every uploaded part
        await form.close()

    return ProfileUpdateResponse(user=ProfileResponse.model_validate(user))
