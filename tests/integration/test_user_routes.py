"""Integration tests for the user profile update endpoint."""

import json
import uuid
from collections.abc import Callable
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from src.api.middleware.error_handler import UploadFailedError
from src.services.image_store import UploadedAsset

URL = "/api/v1/users/update"

WALLET = "0xA1b2C3d4E5f60718293a4B5c6D7e8F9012345678"

AVATAR_URL = "https://res.cloudinary.com/demo/image/upload/v1760789012/user_avatars/x9kq2lmzt0.png"


def executed_params(engine: MagicMock) -> dict:
    """Return the bound parameters of the executed UPDATE."""
    _, params = engine.update_conn.execute.call_args.args
    return params


class TestUpdateUser:
    """Tests for PUT/PATCH /api/v1/users/update."""

    def test_updates_username_and_bio(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test the username and bio example end to end."""
        engine = patched_service(
            row={
                "id": 7,
                "wallet": WALLET,
                "username": "nova",
                "email": None,
                "avatar": None,
                "bio": "hi",
                "streamKey": None,
                "socialLinks": None,
                "updated_at": "2026-10-18T12:00:00+00:00",
            }
        )

        response = client.put(
            URL,
            params={"wallet": WALLET},
            data={"username": "nova", "bio": "hi"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "User updated successfully"
        assert data["user"]["username"] == "nova"
        assert data["user"]["bio"] == "hi"
        assert data["user"]["wallet"] == WALLET

        params = executed_params(engine)
        assert params == {"wallet": WALLET, "p_username": "nova", "p_bio": "hi"}

    def test_patch_is_accepted(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that PATCH behaves like PUT."""
        response = client.patch(URL, data={"wallet": WALLET, "email": "nova@example.com"})

        assert response.status_code == 200

    def test_response_uses_camel_case_keys(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that stream key and social links keep their API names."""
        response = client.put(URL, params={"wallet": WALLET}, data={"streamKey": "sk_live_123"})

        user = response.json()["user"]
        assert user["streamKey"] == "sk_live_123"
        assert user["socialLinks"] == [{"title": "Twitter", "url": "https://twitter.com/nova"}]

    def test_social_links_are_stored_as_json(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that socialLinks are decoded, validated and re-encoded."""
        links = [{"title": "Site", "url": "https://nova.dev"}]
        engine = patched_service(
            row={"id": 7, "wallet": WALLET, "socialLinks": json.dumps(links)}
        )

        response = client.put(
            URL,
            params={"wallet": WALLET},
            data={"socialLinks": json.dumps(links)},
        )

        assert response.status_code == 200
        assert json.loads(executed_params(engine)["p_sociallinks"]) == links
        assert response.json()["user"]["socialLinks"] == links

    def test_uploads_avatar(
        self,
        client: TestClient,
        patched_service: Callable[..., MagicMock],
        mock_image_store: MagicMock,
    ) -> None:
        """Test that an avatar file is uploaded and its URL persisted."""
        engine = patched_service(row={"id": 7, "wallet": WALLET, "avatar": AVATAR_URL})
        mock_image_store.upload.return_value = UploadedAsset(
            url=AVATAR_URL, public_id="user_avatars/x9kq2lmzt0"
        )

        response = client.put(
            URL,
            headers={"Authorization": f"Bearer {WALLET}"},
            files={"avatar": ("me.png", b"\x89PNG-bytes", "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["user"]["avatar"] == AVATAR_URL
        mock_image_store.upload.assert_awaited_once_with(b"\x89PNG-bytes")
        assert executed_params(engine)["p_avatar"] == AVATAR_URL

    def test_avatar_upload_failure_returns_500(
        self,
        client: TestClient,
        patched_service: Callable[..., MagicMock],
        mock_image_store: MagicMock,
    ) -> None:
        """Test that a failed upload aborts the update."""
        engine = patched_service()
        mock_image_store.upload.side_effect = UploadFailedError()

        response = client.put(
            URL,
            params={"wallet": WALLET},
            data={"username": "nova"},
            files={"avatar": ("me.png", b"\x89PNG-bytes", "image/png")},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to upload avatar"
        engine.begin.assert_not_called()

    def test_query_wallet_takes_precedence(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test identity precedence across query, header and form."""
        engine = patched_service(row={"id": 7, "wallet": "0xquery"})

        response = client.put(
            URL,
            params={"wallet": "0xquery"},
            headers={"Authorization": "Bearer 0xheader"},
            data={"wallet": "0xform", "bio": "hi"},
        )

        assert response.status_code == 200
        _, params = engine.exists_conn.execute.call_args.args
        assert params == {"wallet": "0xquery"}
        assert executed_params(engine)["wallet"] == "0xquery"

    def test_form_wallet_is_used_last(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that the form field identifies the user when nothing else does."""
        engine = patched_service(row={"id": 7, "wallet": "0xform"})

        response = client.put(URL, data={"wallet": "0xform", "bio": "hi"})

        assert response.status_code == 200
        assert executed_params(engine)["wallet"] == "0xform"

    def test_missing_wallet_returns_400(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that a request without any wallet is rejected."""
        engine = patched_service()

        response = client.put(URL, data={"username": "nova"})

        assert response.status_code == 400
        assert response.json()["error"] == "Wallet address is required"
        engine.connect.assert_not_called()

    def test_unknown_wallet_returns_404(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that updates for unknown wallets are rejected."""
        engine = patched_service(exists=False)

        response = client.put(URL, params={"wallet": WALLET}, data={"username": "nova"})

        assert response.status_code == 404
        assert response.json()["error"] == "User not found"
        engine.begin.assert_not_called()

    def test_malformed_social_links_returns_400(
        self,
        client: TestClient,
        patched_service: Callable[..., MagicMock],
        mock_image_store: MagicMock,
    ) -> None:
        """Test that malformed socialLinks abort before upload and write."""
        engine = patched_service()

        response = client.put(
            URL,
            params={"wallet": WALLET},
            data={"socialLinks": "[{oops"},
            files={"avatar": ("me.png", b"\x89PNG-bytes", "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid social links format"
        mock_image_store.upload.assert_not_called()
        engine.begin.assert_not_called()

    def test_no_fields_returns_400(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that an update with nothing to change is rejected."""
        engine = patched_service()

        response = client.put(URL, params={"wallet": WALLET}, data={"nickname": "nova"})

        assert response.status_code == 400
        assert response.json()["error"] == "No update data provided"
        engine.begin.assert_not_called()

    def test_malformed_multipart_returns_400(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that an undecodable body is rejected."""
        response = client.put(
            URL,
            params={"wallet": WALLET},
            content=b"not really multipart",
            headers={"Content-Type": "multipart/form-data"},
        )

        assert response.status_code == 400
        assert response.json()["type"] == "malformed_request"

    def test_uuid_row_id_is_returned(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that a UUID primary key is echoed as text."""
        user_id = uuid.uuid4()
        patched_service(row={"id": user_id, "wallet": WALLET, "bio": "hi"})

        response = client.put(URL, params={"wallet": WALLET}, data={"bio": "hi"})

        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(user_id)

    def test_stored_row_is_echoed_as_returned(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that legacy socialLinks and extra columns do not fail a committed update."""
        patched_service(
            row={
                "id": 7,
                "wallet": WALLET,
                "socialLinks": '[{"platform":"x"}]',
                "created_at": "2026-01-02T03:04:05+00:00",
            }
        )

        response = client.put(URL, params={"wallet": WALLET}, data={"bio": "hi"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["socialLinks"] == [{"platform": "x"}]
        assert user["created_at"] == "2026-01-02T03:04:05+00:00"

    def test_database_failure_returns_500(
        self,
        client: TestClient,
        patched_service: Callable[..., MagicMock],
        mock_image_store: MagicMock,
    ) -> None:
        """Test that a failed write reports a generic message and discards the avatar."""
        patched_service(update_error=SQLAlchemyError("secret dsn detail"))
        mock_image_store.upload.return_value = UploadedAsset(
            url=AVATAR_URL, public_id="user_avatars/x9kq2lmzt0"
        )

        response = client.put(
            URL,
            params={"wallet": WALLET},
            files={"avatar": ("me.png", b"\x89PNG-bytes", "image/png")},
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to update user"
        assert "secret dsn detail" not in response.text
        mock_image_store.delete_by_public_id.assert_awaited_once_with("user_avatars/x9kq2lmzt0")

    def test_unexpected_error_returns_generic_500(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test that unhandled errors do not leak their detail."""
        patched_service(update_error=RuntimeError("secret driver detail"))

        response = client.put(URL, params={"wallet": WALLET}, data={"bio": "hi"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "An unexpected error occurred"
        assert data["type"] == "internal_error"
        assert "secret driver detail" not in response.text

    @pytest.mark.parametrize("method", ["get", "post", "delete"])
    def test_other_methods_return_405(self, client: TestClient, method: str) -> None:
        """Test that only PUT and PATCH are routed."""
        response = client.request(method.upper(), URL)

        assert response.status_code == 405
        assert "error" in response.json()

    def test_unversioned_path_is_served(
        self, client: TestClient, patched_service: Callable[..., MagicMock]
    ) -> None:
        """Test the /api/users/update alias."""
        response = client.put("/api/users/update", params={"wallet": WALLET}, data={"bio": "hi"})

        assert response.status_code == 200

    def test_oversized_body_returns_413(self, client: TestClient) -> None:
        """Test that the body size limit applies to uploads."""
        with patch("src.api.middleware.request_size.get_settings") as mock_settings:
            mock_settings.return_value.max_request_body_size = 16

            response = client.put(
                URL,
                params={"wallet": WALLET},
                files={"avatar": ("me.png", b"x" * 1024, "image/png")},
            )

        assert response.status_code == 413
        assert response.json()["type"] == "request_too_large"
