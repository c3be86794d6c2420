# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Credential and endpoint resolution for the Error Reporting API.

An API key, when configured, is always used and OAuth2 is skipped entirely.
Otherwise an access token is obtained through Google's credential chain:

1. ``credentials`` option (service-account info mapping)
2. ``key_filename`` option (credentials file)
3. Application default credentials (environment, gcloud, metadata server)

google-auth performs blocking I/O, so loading and refreshing run in a
worker thread to keep the event loop free.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from .configuration import Configuration
from .exceptions import AuthResolutionError
from .logger import Logger

DEFAULT_API_ENDPOINT = "https://clouderrorreporting.googleapis.com/v1beta1/projects"
SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]

API_KEY_SKIP_MESSAGE = "API key provided; skipping OAuth2 token request."
NO_CREDENTIALS_MESSAGE = (
    "Unable to find credential information on instance. This library will be "
    "unable to communicate with the Error Reporting API to save errors.  Message: "
)


@dataclass(frozen=True)
class ApiKeyAuth:
    """Authorizes a request with the ``key`` query parameter."""

    key: str

    def apply(self, params: dict[str, str], headers: dict[str, str]) -> None:
        params["key"] = self.key


@dataclass(frozen=True)
class BearerTokenAuth:
    """Authorizes a request with an OAuth2 bearer token."""

    token: str

    def apply(self, params: dict[str, str], headers: dict[str, str]) -> None:
        headers["Authorization"] = f"Bearer {self.token}"


def build_report_url(config: Configuration, project_id: str) -> str:
    """Build the events:report URL for a project."""
    endpoint = (config.get_api_endpoint() or DEFAULT_API_ENDPOINT).rstrip("/")
    return f"{endpoint}/{project_id}/events:report"


class CredentialResolver:
    """Resolves the authorization for delivery requests.

    Attributes:
        uses_api_key: True when an API key is configured
    """

    def __init__(self, config: Configuration, logger: Logger):
        self._config = config
        self._logger = logger
        self._credentials: Any = None
        self._credentials_project_id: str | None = None

    @property
    def uses_api_key(self) -> bool:
        return self._config.get_key() is not None

    async def initialize(self) -> None:
        """Acquire an OAuth2 token ahead of the first request.

        Failures are logged, not raised; the submission still proceeds and
        fails at the HTTP layer if it is truly uncredentialed.
        """
        if self.uses_api_key:
            self._logger.info(API_KEY_SKIP_MESSAGE)
            return

        try:
            await self._get_token()
        except AuthResolutionError as e:
            self._logger.error(NO_CREDENTIALS_MESSAGE + str(e))

    async def resolve_auth(self) -> ApiKeyAuth | BearerTokenAuth:
        """Return the authorization for the next request.

        Raises:
            AuthResolutionError: If neither an API key nor credentials are available
        """
        key = self._config.get_key()
        if key is not None:
            return ApiKeyAuth(key)
        return BearerTokenAuth(await self._get_token())

    async def lookup_project_id(self) -> str | None:
        """Ask the credential chain (metadata server on Google infrastructure) for a project id."""
        try:
            await self._load_credentials()
        except AuthResolutionError as e:
            self._logger.warning("Unable to determine the project id from credentials", error=str(e))
            return None
        return self._credentials_project_id

    async def _get_token(self) -> str:
        credentials = await self._load_credentials()
        if not credentials.valid:
            try:
                await asyncio.to_thread(credentials.refresh, GoogleAuthRequest())
            except google.auth.exceptions.GoogleAuthError as e:
                raise AuthResolutionError(f"Failed to refresh access token: {e}") from e
        if not credentials.token:
            raise AuthResolutionError("Credentials did not yield an access token")
        return credentials.token

    async def _load_credentials(self) -> Any:
        if self._credentials is None:
            credentials, project_id = await asyncio.to_thread(self._load_credentials_sync)
            self._credentials = credentials
            self._credentials_project_id = project_id
        return self._credentials

    def _load_credentials_sync(self) -> tuple[Any, str | None]:
        info = self._config.get_credentials()
        key_filename = self._config.get_key_filename()
        try:
            if info is not None:
                credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
                return credentials, info.get("project_id")
            if key_filename is not None:
                return google.auth.load_credentials_from_file(key_filename, scopes=SCOPES)
            return google.auth.default(scopes=SCOPES)
        except google.auth.exceptions.GoogleAuthError as e:
            raise AuthResolutionError(str(e)) from e
        except (ValueError, KeyError, OSError) as e:
            raise AuthResolutionError(f"Invalid credentials: {e}") from e
