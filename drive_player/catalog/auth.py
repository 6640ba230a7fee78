"""
Credential providers for the remote catalog.

The catalog client asks a credential provider for an access token before
every request. Providers are passed in explicitly (no process-wide
singleton), so tests use StaticTokenProvider and the CLI uses
DeviceCodeCredentialProvider.

Token Acquisition (DeviceCodeCredentialProvider):
    1. Cached access token, if it is still valid for at least 60 seconds
    2. Silent refresh with the cached refresh token
    3. Interactive device-code sign-in, but only when there is no cached
       account or the token endpoint says user interaction is required
       (interaction_required, login_required, consent_required, invalid_grant)

    Any other failure is raised as AuthError (or NetworkError for transport
    failures) and is never retried here.

Token Storage:
    Tokens are kept as JSON at the configured token path:
    {
        "access_token": "...",
        "refresh_token": "...",
        "expires_at": 1760000000.0,
        "scope": "Files.Read User.Read offline_access"
    }

Usage:
    provider = DeviceCodeCredentialProvider(config.auth, config.token_path)
    token = provider.get_access_token()
"""

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Protocol

import requests

from drive_player.core.config import AuthConfig
from drive_player.core.exceptions import AuthError, NetworkError
from drive_player.core.logger import get_logger

logger = get_logger(__name__)


DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

# Token endpoint error codes that mean "ask the user again"
INTERACTION_REQUIRED_ERRORS = frozenset({
    "interaction_required",
    "login_required",
    "consent_required",
    "invalid_grant",
})

# Refresh this many seconds before the server-side expiry
EXPIRY_SKEW_SECONDS = 60

REQUEST_TIMEOUT = 30


class CredentialProvider(Protocol):
    """Anything that can hand out a bearer token for the catalog."""

    def get_access_token(self) -> str:
        """
        Return a bearer token.

        Raises:
            AuthError: If no token can be obtained.
        """
        ...


class StaticTokenProvider:
    """
    Provider that always returns the same token.

    Useful for tests and for tokens issued out of band.
    """

    def __init__(self, token: str) -> None:
        if not token:
            raise AuthError("Static token must be a non-empty string")
        self._token = token

    def get_access_token(self) -> str:
        return self._token


def _default_prompt(message: str) -> None:
    logger.info(message)


class DeviceCodeCredentialProvider:
    """
    OAuth 2.0 device-code provider for the Microsoft identity platform.

    Attributes:
        _auth: Client id, authority and scopes from config.yaml.
        _token_path: Where the token JSON is persisted.
        _session: requests.Session used for the identity endpoints.
        _prompt: Called with the human-readable sign-in instructions.
        _sleep / _clock: Injected for tests.

    Thread Safety:
        get_access_token() is serialized with a lock, so concurrent sync
        workers never run two refreshes or two sign-ins at once.
    """

    def __init__(
        self,
        auth: AuthConfig,
        token_path: Path,
        session: requests.Session | None = None,
        prompt: Callable[[str], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time
    ) -> None:
        self._auth = auth
        self._token_path = token_path
        self._session = session or requests.Session()
        self._prompt = prompt or _default_prompt
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def token_endpoint(self) -> str:
        return f"{self._auth.authority}/oauth2/v2.0/token"

    @property
    def device_code_endpoint(self) -> str:
        return f"{self._auth.authority}/oauth2/v2.0/devicecode"

    @property
    def _scope(self) -> str:
        return " ".join(self._auth.scopes)

    # =========================================================================
    # Public API
    # =========================================================================

    def get_access_token(self) -> str:
        """
        Return a valid access token, refreshing or signing in as needed.

        Raises:
            AuthError: If the refresh fails for a reason other than
                       "interaction required", or the interactive sign-in fails.
            NetworkError: If the identity endpoints cannot be reached.
        """
        with self._lock:
            tokens = self._load_tokens()

            if tokens is None:
                logger.info("No cached account, starting interactive sign-in")
                return self._sign_in_locked()

            if self._clock() < float(tokens.get("expires_at", 0)) - EXPIRY_SKEW_SECONDS:
                return tokens["access_token"]

            refresh_token = tokens.get("refresh_token")
            if not refresh_token:
                return self._sign_in_locked()

            try:
                return self._refresh_locked(refresh_token)
            except AuthError as e:
                if not e.interaction_required:
                    raise
                logger.info("Silent refresh needs user interaction, signing in again")
                return self._sign_in_locked()

    def sign_in(self) -> str:
        """Force the interactive device-code flow and return the new token."""
        with self._lock:
            return self._sign_in_locked()

    def sign_out(self) -> None:
        """Forget the cached account. Safe to call when signed out."""
        with self._lock:
            try:
                self._token_path.unlink()
                logger.info("Signed out")
            except FileNotFoundError:
                logger.debug("Sign-out requested but no token cache exists")

    def is_signed_in(self) -> bool:
        """True if a cached account (with a refresh token) exists."""
        tokens = self._load_tokens()
        return bool(tokens and tokens.get("refresh_token"))

    # =========================================================================
    # Token Endpoint
    # =========================================================================

    def _refresh_locked(self, refresh_token: str) -> str:
        logger.debug("Refreshing access token silently")
        payload = self._post(self.token_endpoint, {
            "client_id": self._auth.client_id,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": self._scope,
        })

        error = payload.get("error")
        if error:
            raise AuthError(
                f"Token refresh failed: {payload.get('error_description', error)}",
                details={"error": error},
                interaction_required=error in INTERACTION_REQUIRED_ERRORS
            )

        return self._store_token_response(payload, fallback_refresh=refresh_token)

    def _sign_in_locked(self) -> str:
        flow = self._post(self.device_code_endpoint, {
            "client_id": self._auth.client_id,
            "scope": self._scope,
        })

        if "error" in flow or "device_code" not in flow:
            raise AuthError(
                f"Could not start sign-in: {flow.get('error_description', flow.get('error', 'no device code'))}",
                details={"error": flow.get("error")}
            )

        self._prompt(flow.get("message") or (
            f"To sign in, open {flow.get('verification_uri')} "
            f"and enter the code {flow.get('user_code')}"
        ))

        interval = float(flow.get("interval", 5))
        deadline = self._clock() + float(flow.get("expires_in", 900))

        while self._clock() < deadline:
            self._sleep(interval)
            payload = self._post(self.token_endpoint, {
                "client_id": self._auth.client_id,
                "grant_type": DEVICE_CODE_GRANT,
                "device_code": flow["device_code"],
            })

            error = payload.get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval += 5
                continue
            if error:
                raise AuthError(
                    f"Sign-in failed: {payload.get('error_description', error)}",
                    details={"error": error}
                )

            logger.info("Signed in")
            return self._store_token_response(payload)

        raise AuthError("Sign-in timed out before the code was entered")

    def _post(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        """
        POST a form to an identity endpoint and return its JSON body.

        Identity endpoints answer errors with 400 and a JSON body, so the
        body is returned for any status as long as it parses.
        """
        try:
            response = self._session.post(url, data=data, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise NetworkError(
                f"Could not reach the identity provider: {e}",
                details={"url": url, "original_error": str(e)}
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError(
                f"Identity provider returned a non-JSON response (HTTP {response.status_code})",
                details={"url": url, "http_status": response.status_code}
            ) from e

        if not isinstance(payload, dict):
            raise AuthError(
                "Identity provider returned an unexpected response",
                details={"url": url, "http_status": response.status_code}
            )
        return payload

    # =========================================================================
    # Token Cache
    # =========================================================================

    def _store_token_response(
        self,
        payload: dict[str, Any],
        fallback_refresh: str | None = None
    ) -> str:
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthError("Token response has no access token")

        tokens = {
            "access_token": access_token,
            "refresh_token": payload.get("refresh_token") or fallback_refresh,
            "expires_at": self._clock() + float(payload.get("expires_in", 3600)),
            "scope": payload.get("scope", self._scope),
        }
        self._save_tokens(tokens)
        return access_token

    def _load_tokens(self) -> dict[str, Any] | None:
        if not self._token_path.exists():
            return None
        try:
            with open(self._token_path, "r", encoding="utf-8") as f:
                tokens = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable token cache {self._token_path}: {e}")
            return None
        if not isinstance(tokens, dict) or not tokens.get("access_token"):
            return None
        return tokens

    def _save_tokens(self, tokens: dict[str, Any]) -> None:
        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._token_path.with_suffix(".tmp")
        # Owner-only from creation, never briefly readable at umask permissions
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(tokens, f)
        tmp_path.replace(self._token_path)
        try:
            # A leftover tmp file keeps its old mode through O_CREAT
            self._token_path.chmod(0o600)
        except OSError:
            logger.debug("Could not restrict token cache permissions")
