"""Test credential providers"""

import json
import os
import stat
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

from drive_player.catalog import DeviceCodeCredentialProvider, StaticTokenProvider
from drive_player.catalog.auth import DEVICE_CODE_GRANT
from drive_player.core import AuthError, NetworkError

from tests.conftest import graph_response

NOW = 1_000_000.0


DEVICE_FLOW = {
    "device_code": "device-123",
    "user_code": "ABCD-EFGH",
    "verification_uri": "https://microsoft.com/devicelogin",
    "expires_in": 900,
    "interval": 5,
    "message": "To sign in, use a web browser to open the page and enter the code ABCD-EFGH",
}

TOKEN_RESPONSE = {
    "access_token": "new-access",
    "refresh_token": "new-refresh",
    "expires_in": 3600,
    "scope": "Files.Read User.Read",
}


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def prompt():
    return Mock()


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def token_path(temp_dir):
    return temp_dir / "token.json"


@pytest.fixture
def provider(config, token_path, session, prompt, sleep):
    return DeviceCodeCredentialProvider(
        config.auth,
        token_path,
        session=session,
        prompt=prompt,
        sleep=sleep,
        clock=lambda: NOW
    )


def write_tokens(token_path, expires_at, refresh_token="old-refresh"):
    token_path.write_text(json.dumps({
        "access_token": "old-access",
        "refresh_token": refresh_token,
        "expires_at": expires_at,
    }), encoding="utf-8")


def posted_grants(session):
    return [call.kwargs["data"].get("grant_type") for call in session.post.call_args_list]


class TestStaticTokenProvider:

    def test_returns_token(self):
        assert StaticTokenProvider("abc").get_access_token() == "abc"

    def test_empty_token_rejected(self):
        with pytest.raises(AuthError):
            StaticTokenProvider("")


class TestDeviceCodeCredentialProvider:
    """Test silent-first token acquisition"""

    def test_valid_cached_token_needs_no_request(self, provider, token_path, session):
        write_tokens(token_path, expires_at=NOW + 600)

        assert provider.get_access_token() == "old-access"
        session.post.assert_not_called()

    def test_nearly_expired_token_is_refreshed(self, provider, token_path, session, prompt):
        write_tokens(token_path, expires_at=NOW + 30)
        session.post.return_value = graph_response(TOKEN_RESPONSE)

        assert provider.get_access_token() == "new-access"

        assert posted_grants(session) == ["refresh_token"]
        data = session.post.call_args.kwargs["data"]
        assert data["refresh_token"] == "old-refresh"
        assert data["client_id"] == "test-client-id"
        prompt.assert_not_called()

        saved = json.loads(token_path.read_text(encoding="utf-8"))
        assert saved["access_token"] == "new-access"
        assert saved["refresh_token"] == "new-refresh"
        assert saved["expires_at"] == NOW + 3600

    @pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
    def test_saved_tokens_are_owner_only(self, provider, token_path, session):
        write_tokens(token_path, expires_at=0)
        token_path.with_suffix(".tmp").write_text("stale", encoding="utf-8")
        token_path.with_suffix(".tmp").chmod(0o644)
        session.post.return_value = graph_response(TOKEN_RESPONSE)

        provider.get_access_token()

        assert stat.S_IMODE(token_path.stat().st_mode) == 0o600
        assert not token_path.with_suffix(".tmp").exists()

    @pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
    def test_token_file_is_created_owner_only(self, provider, token_path, session, monkeypatch):
        write_tokens(token_path, expires_at=0)
        token_path.chmod(0o644)
        session.post.return_value = graph_response(TOKEN_RESPONSE)
        monkeypatch.setattr(Path, "chmod", Mock(side_effect=OSError("read-only mount")))

        provider.get_access_token()

        assert stat.S_IMODE(token_path.stat().st_mode) == 0o600

    def test_refresh_keeps_old_refresh_token_when_none_returned(self, provider, token_path, session):
        write_tokens(token_path, expires_at=0)
        session.post.return_value = graph_response({"access_token": "a2", "expires_in": 60})

        provider.get_access_token()

        saved = json.loads(token_path.read_text(encoding="utf-8"))
        assert saved["refresh_token"] == "old-refresh"

    def test_interaction_required_falls_back_to_device_code(
        self, provider, token_path, session, prompt, sleep
    ):
        write_tokens(token_path, expires_at=0)
        session.post.side_effect = [
            graph_response({"error": "invalid_grant", "error_description": "expired"}, 400),
            graph_response(DEVICE_FLOW),
            graph_response({"error": "authorization_pending"}, 400),
            graph_response(TOKEN_RESPONSE),
        ]

        assert provider.get_access_token() == "new-access"

        assert posted_grants(session) == ["refresh_token", None, DEVICE_CODE_GRANT, DEVICE_CODE_GRANT]
        prompt.assert_called_once_with(DEVICE_FLOW["message"])
        assert sleep.call_count == 2

    def test_other_refresh_errors_are_raised(self, provider, token_path, session, prompt):
        write_tokens(token_path, expires_at=0)
        session.post.return_value = graph_response(
            {"error": "invalid_client", "error_description": "bad client"}, 400
        )

        with pytest.raises(AuthError) as exc_info:
            provider.get_access_token()

        assert not exc_info.value.interaction_required
        prompt.assert_not_called()
        assert session.post.call_count == 1

    def test_no_cached_account_starts_device_code(self, provider, session, prompt):
        session.post.side_effect = [
            graph_response(DEVICE_FLOW),
            graph_response(TOKEN_RESPONSE),
        ]

        assert provider.get_access_token() == "new-access"
        prompt.assert_called_once()
        assert provider.is_signed_in()

    def test_slow_down_increases_interval(self, provider, session, sleep):
        session.post.side_effect = [
            graph_response(DEVICE_FLOW),
            graph_response({"error": "slow_down"}, 400),
            graph_response(TOKEN_RESPONSE),
        ]

        provider.sign_in()

        assert [call.args[0] for call in sleep.call_args_list] == [5.0, 10.0]

    def test_declined_sign_in(self, provider, session):
        session.post.side_effect = [
            graph_response(DEVICE_FLOW),
            graph_response({"error": "authorization_declined"}, 400),
        ]

        with pytest.raises(AuthError, match="Sign-in failed"):
            provider.sign_in()
        assert not provider.is_signed_in()

    def test_transport_error(self, provider, session):
        session.post.side_effect = requests.ConnectionError("offline")

        with pytest.raises(NetworkError, match="offline"):
            provider.get_access_token()

    def test_sign_out(self, provider, token_path):
        write_tokens(token_path, expires_at=NOW + 600)
        assert provider.is_signed_in()

        provider.sign_out()

        assert not token_path.exists()
        assert not provider.is_signed_in()
        provider.sign_out()

    def test_corrupt_token_cache_is_ignored(self, provider, token_path, session):
        token_path.write_text("{not json", encoding="utf-8")
        session.post.side_effect = [
            graph_response(DEVICE_FLOW),
            graph_response(TOKEN_RESPONSE),
        ]

        assert provider.get_access_token() == "new-access"

    def test_endpoints_derived_from_authority(self, provider):
        assert provider.token_endpoint == (
            "https://login.microsoftonline.com/organizations/oauth2/v2.0/token"
        )
        assert provider.device_code_endpoint.endswith("/oauth2/v2.0/devicecode")
