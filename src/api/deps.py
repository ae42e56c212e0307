"""FastAPI dependency helpers."""

from src.api.middleware.error_handler import MissingIdentityError

BEARER_PREFIX = "Bearer "


def strip_bearer_prefix(authorization: str) -> str:
    """Remove a leading "Bearer " scheme from an Authorization header value.

    The scheme name is matched case-insensitively.
    """
    if authorization[:len(BEARER_PREFIX)].lower() == BEARER_PREFIX.lower():
        return authorization[len(BEARER_PREFIX):]
    return authorization


def resolve_wallet(
    query_wallet: str | None,
    authorization: str | None,
    form_wallet: str | None,
) -> str:
    """Resolve the caller's wallet address.

    Sources are tried in order: the ``wallet`` query parameter, the
    Authorization header (with any Bearer prefix removed), then the
    ``wallet`` form field. Blank values are skipped.

    Args:
        query_wallet: Value of the ``wallet`` query parameter.
        authorization: Raw Authorization header value.
        form_wallet: Value of the ``wallet`` form field.

    Returns:
        str: The wallet address.

    Raises:
        MissingIdentityError: If no source provides a wallet.
    """
    if query_wallet:
        return query_wallet

    if authorization:
        token = strip_bearer_prefix(authorization).strip()
        if token:
            return token

    if form_wallet:
        return form_wallet

    raise MissingIdentityError()
