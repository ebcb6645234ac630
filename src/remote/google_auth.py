"""Google OAuth authorization and token persistence.

This module turns an OAuth client secret plus an optional stored token
into Google credentials, running the console code exchange when no
token is available.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Mapping

from core.constants import DEFAULT_TOKEN_PATH, DRIVE_SCOPES, OAUTH_CLIENT_SECTIONS
from core.errors import SheetKVAuthError, SheetKVConfigError, SheetKVDependencyError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class TokenFile:
    """JSON token file on local disk."""

    def __init__(self, path: Path = DEFAULT_TOKEN_PATH) -> None:
        self.path = path

    def read(self) -> dict[str, Any] | None:
        """Return the stored token, or None when no file exists.

        Raises:
            SheetKVAuthError: If the file is not a JSON object.
        """
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            raise SheetKVAuthError(
                f"Failed to read token at {self.path}: {error}. "
                "Delete the token file to authorize again."
            ) from error
        if not isinstance(payload, dict):
            raise SheetKVAuthError(
                f"Invalid token at {self.path}: expected a JSON object. "
                "Delete the token file to authorize again."
            )
        return payload

    def write(self, token_json: str) -> None:
        """Persist a token as JSON text."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token_json + "\n", encoding="utf-8")
        _LOGGER.info("token_saved", path=str(self.path))


def parse_client_config(credentials: str | Mapping[str, Any]) -> dict[str, Any]:
    """Parse an OAuth client secret into a client config mapping.

    Args:
        credentials: Client secret JSON text or already parsed mapping.

    Returns:
        Mapping with one ``installed`` or ``web`` section.

    Raises:
        SheetKVConfigError: If the secret is malformed.
    """
    if isinstance(credentials, str):
        try:
            payload = json.loads(credentials)
        except json.JSONDecodeError as error:
            raise SheetKVConfigError(
                f"Invalid OAuth client secret: {error.msg}. "
                "Provide the JSON downloaded from the Google Cloud console."
            ) from error
    else:
        payload = dict(credentials)
    if not isinstance(payload, dict):
        raise SheetKVConfigError("Invalid OAuth client secret: expected a JSON object.")
    for section_name in OAUTH_CLIENT_SECTIONS:
        section = payload.get(section_name)
        if isinstance(section, dict):
            missing = [
                field_name
                for field_name in ("client_id", "client_secret", "redirect_uris")
                if not section.get(field_name)
            ]
            if missing:
                raise SheetKVConfigError(
                    f"Invalid OAuth client secret: '{section_name}' is missing "
                    f"{', '.join(missing)}."
                )
            return {section_name: section}
    raise SheetKVConfigError(
        "Invalid OAuth client secret: expected an 'installed' or 'web' section."
    )


class GoogleOAuthProvider:
    """Authorize with a stored token or an interactive code exchange."""

    def __init__(
        self,
        token_file: TokenFile | None = None,
        prompt: Callable[[str], str] = input,
        scopes: tuple[str, ...] = DRIVE_SCOPES,
    ) -> None:
        """Create the provider.

        Args:
            token_file: Where newly exchanged tokens are saved.
            prompt: Reads the authorization code from the user.
            scopes: OAuth scopes requested in the exchange.
        """
        self._token_file = token_file or TokenFile()
        self._prompt = prompt
        self._scopes = scopes

    async def authorize(
        self,
        credentials: str | Mapping[str, Any] | None,
        token: str | Mapping[str, Any] | None,
        save_token: bool,
    ) -> Any:
        """Return Google credentials for the client secret.

        Args:
            credentials: OAuth client secret.
            token: Previously issued token; triggers the exchange when None.
            save_token: Whether a newly exchanged token is written to disk.

        Returns:
            ``google.oauth2.credentials.Credentials``.

        Raises:
            SheetKVConfigError: If no client secret is supplied.
            SheetKVAuthError: If the token is invalid or the exchange fails.
        """
        if credentials is None:
            raise SheetKVConfigError(
                "Authorization requires an OAuth client secret. "
                "Pass credentials or an already authorized client."
            )
        client_config = parse_client_config(credentials)
        if token is not None:
            return self._credentials_from_token(client_config, token)
        google_credentials = await self._exchange_code(client_config)
        if save_token:
            self._token_file.write(google_credentials.to_json())
        return google_credentials

    def _credentials_from_token(
        self,
        client_config: dict[str, Any],
        token: str | Mapping[str, Any],
    ) -> Any:
        credentials_module = _import_google_credentials()
        token_info = _token_info(token)
        section = next(iter(client_config.values()))
        token_info.setdefault("client_id", section["client_id"])
        token_info.setdefault("client_secret", section["client_secret"])
        if "token" not in token_info and "access_token" in token_info:
            token_info["token"] = token_info["access_token"]
        try:
            return credentials_module.Credentials.from_authorized_user_info(
                token_info, list(self._scopes)
            )
        except ValueError as error:
            raise SheetKVAuthError(
                f"Stored token is not usable: {error}. "
                "Delete the token to run the authorization exchange again."
            ) from error

    async def _exchange_code(self, client_config: dict[str, Any]) -> Any:
        flow_module = _import_oauth_flow()
        section = next(iter(client_config.values()))
        flow = flow_module.Flow.from_client_config(
            client_config,
            scopes=list(self._scopes),
            redirect_uri=section["redirect_uris"][0],
        )
        auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")
        _LOGGER.info("authorization_required", scopes=list(self._scopes))
        code = await asyncio.to_thread(
            self._prompt,
            f"Authorize this app by visiting this url: {auth_url}\n"
            "Enter the code from that page here: ",
        )
        try:
            await asyncio.to_thread(flow.fetch_token, code=code.strip())
        except Exception as error:
            raise SheetKVAuthError(
                f"Error retrieving access token: {error}. "
                "Restart authorization and paste a fresh code."
            ) from error
        return flow.credentials


def _token_info(token: str | Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(token, str):
        return dict(token)
    try:
        payload = json.loads(token)
    except json.JSONDecodeError as error:
        raise SheetKVAuthError(f"Stored token is not valid JSON: {error.msg}.") from error
    if not isinstance(payload, dict):
        raise SheetKVAuthError("Stored token is not valid: expected a JSON object.")
    return payload


def _import_google_credentials() -> Any:
    try:
        from google.oauth2 import credentials
    except ImportError as error:
        raise SheetKVDependencyError(
            "Google authorization requires google-auth, but it is not installed. "
            "Install google-auth to use stored tokens."
        ) from error
    return credentials


def _import_oauth_flow() -> Any:
    try:
        from google_auth_oauthlib import flow
    except ImportError as error:
        raise SheetKVDependencyError(
            "Interactive authorization requires google-auth-oauthlib, but it is not installed. "
            "Install google-auth-oauthlib to run the code exchange."
        ) from error
    return flow
