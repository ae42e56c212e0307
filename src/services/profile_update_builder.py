"""Builds the single parameterized UPDATE statement for a partial profile update."""

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from src.api.middleware.error_handler import NoFieldsProvidedError

PROFILE_TABLE = "users"

# Columns returned after an update, aliased to the API's field names
RETURNING_COLUMNS = (
    "id, wallet, username, email, avatar, bio, "
    'streamkey AS "streamKey", sociallinks AS "socialLinks", updated_at'
)


def _as_is(value: Any) -> Any:
    return value


def _encode_social_links(value: Any) -> str:
    """Serialize social links to canonical JSON text."""
    links = [
        link.model_dump() if hasattr(link, "model_dump") else dict(link)
        for link in value
    ]
    return json.dumps(links, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class UpdatableField:
    """One profile field that a partial update may set."""

    name: str
    column: str
    encode: Callable[[Any], Any] = _as_is


# Canonical order; column names are the only text ever placed in the statement
UPDATABLE_FIELDS: tuple[UpdatableField, ...] = (
    UpdatableField("username", "username"),
    UpdatableField("email", "email"),
    UpdatableField("avatar", "avatar"),
    UpdatableField("bio", "bio"),
    UpdatableField("streamKey", "streamkey"),
    UpdatableField("socialLinks", "sociallinks", _encode_social_links),
)


@dataclass(frozen=True)
class ProfileUpdateStatement:
    """SQL text plus its bound parameters."""

    sql: str
    params: dict[str, Any]

    @property
    def columns(self) -> list[str]:
        """Columns assigned from bound parameters, in statement order."""
        return [
            field.column
            for field in UPDATABLE_FIELDS
            if f"p_{field.column}" in self.params
        ]


def build_profile_update(wallet: str, fields: Mapping[str, Any]) -> ProfileUpdateStatement:
    """Build an UPDATE covering exactly the supplied fields.

    Unrecognized keys are ignored. ``updated_at`` is always refreshed.

    Args:
        wallet: Wallet address of the row to update.
        fields: Field name to new value, containing only supplied fields.

    Returns:
        ProfileUpdateStatement: Statement text and parameters for execution.

    Raises:
        NoFieldsProvidedError: If no recognized field is present.
    """
    set_clauses: list[str] = []
    params: dict[str, Any] = {"wallet": wallet}

    for field in UPDATABLE_FIELDS:
        if field.name not in fields:
            continue
        param = f"p_{field.column}"
        set_clauses.append(f"{field.column} = :{param}")
        params[param] = field.encode(fields[field.name])

    if not set_clauses:
        raise NoFieldsProvidedError()

    set_clauses.append("updated_at = CURRENT_TIMESTAMP")

    sql = (
        f"UPDATE {PROFILE_TABLE} "
        f"SET {', '.join(set_clauses)} "
        f"WHERE wallet = :wallet "
        f"RETURNING {RETURNING_COLUMNS}"
    )
    return ProfileUpdateStatement(sql=sql, params=params)
