"""GitHub installation-token endpoint client.

Trades a signed app assertion for an installation access token:

    POST /app/installations/{installation_id}/access_tokens

Every non-2xx response is turned into a specific ``ExchangeError``
subclass. This module never retries; see ``apptoken.retry``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from types import TracebackType

import httpx
from pydantic import ValidationError

from apptoken.assertion import Assertion
from apptoken.errors import (
    AuthenticationRejected,
    ExchangeError,
    InstallationNotFound,
    MalformedPermissionRequest,
    NetworkFailure,
    ScopeRejected,
    TemporarilyUnavailable,
    UnexpectedResponse,
)
from apptoken.models import InstallationToken

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "apptoken-installation-token"

# Well under the ~30s worst case, even with the retry delay added.
DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)

TRANSIENT_STATUSES = frozenset({429, 503})

_NO_EXPLANATION = "no explanation supplied"


def _remote_message(response: httpx.Response) -> str:
    """Best-effort explanation from a GitHub error body."""
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] if text else _NO_EXPLANATION

    if not isinstance(data, dict):
        return _NO_EXPLANATION

    message = str(data.get("message") or _NO_EXPLANATION)
    errors = data.get("errors")
    if isinstance(errors, str):
        errors = [errors]
    elif not isinstance(errors, list):
        errors = []

    details = []
    for err in errors:
        if isinstance(err, dict):
            detail = err.get("message") or err.get("code")
            if detail:
                details.append(str(detail))
        elif isinstance(err, str):
            details.append(err)
    if details:
        message += f" ({'; '.join(details)})"
    return message


def _format_permissions(permissions: Mapping[str, str]) -> str:
    return ", ".join(f"{name}={level}" for name, level in sorted(permissions.items()))


def build_request_body(
    permissions: Mapping[str, str] | None = None,
    repositories: Sequence[str] | None = None,
) -> dict | None:
    """JSON body for the token request, or None when nothing is restricted.

    An empty permissions map means "no restriction", same as passing None.
    """
    body: dict = {}
    if permissions:
        body["permissions"] = dict(permissions)
    if repositories:
        body["repositories"] = list(repositories)
    return body or None


class ExchangeClient:
    """Synchronous client for the installation access-token endpoint."""

    def __init__(
        self,
        api_url: str = GITHUB_API_URL,
        *,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.api_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": USER_AGENT,
            },
        )

    def __enter__(self) -> ExchangeClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def exchange(
        self,
        installation_id: str,
        assertion: Assertion,
        permissions: Mapping[str, str] | None = None,
        repositories: Sequence[str] | None = None,
    ) -> InstallationToken:
        """Request an installation token with *assertion* as the bearer credential.

        Args:
            installation_id: Numeric installation id.
            assertion: Freshly signed app JWT.
            permissions: Optional ``{"contents": "read", ...}`` restriction.
            repositories: Optional repository names to scope the token to.

        Returns:
            The parsed InstallationToken.

        Raises:
            ExchangeError: A subclass matching the failure; see module docs.
        """
        path = f"/app/installations/{installation_id}/access_tokens"
        headers = {"Authorization": f"Bearer {assertion.token}"}
        body = build_request_body(permissions, repositories)

        if permissions:
            logger.info("Requesting permissions: %s", _format_permissions(permissions))

        try:
            if body is None:
                response = self._client.post(path, headers=headers)
            else:
                response = self._client.post(path, headers=headers, json=body)
        except httpx.TransportError as exc:
            raise NetworkFailure(
                f"No response from {self.api_url} ({type(exc).__name__}: {exc}); "
                "check network connectivity to GitHub"
            ) from exc

        logger.debug("Token endpoint answered HTTP %d", response.status_code)

        if response.status_code in (200, 201):
            return self._parse_token(response)

        raise self._error_for_status(response, installation_id, assertion, permissions)

    def _parse_token(self, response: httpx.Response) -> InstallationToken:
        try:
            return InstallationToken.model_validate(response.json())
        except (ValueError, ValidationError):
            # The validation error may echo the token back; keep it out.
            raise UnexpectedResponse(
                f"GitHub answered HTTP {response.status_code} without a usable "
                "token, expires_at and permissions",
                http_status=response.status_code,
            ) from None

    def _error_for_status(
        self,
        response: httpx.Response,
        installation_id: str,
        assertion: Assertion,
        permissions: Mapping[str, str] | None,
    ) -> ExchangeError:
        status = response.status_code
        remote = _remote_message(response)

        if status == 401:
            return AuthenticationRejected(
                f"GitHub rejected the app JWT (HTTP 401): {remote}",
                iat=assertion.iat,
                exp=assertion.exp,
            )
        if status == 403:
            message = f"Requested scope was rejected (HTTP 403): {remote}"
            if permissions:
                message += f"; requested {_format_permissions(permissions)}"
            return ScopeRejected(message, requested=permissions)
        if status == 404:
            return InstallationNotFound(
                f"Installation {installation_id} not found for this app (HTTP 404): {remote}",
                http_status=status,
            )
        if status == 422:
            return MalformedPermissionRequest(
                f"GitHub could not process the permission request (HTTP 422): {remote}",
                http_status=status,
            )
        if status in TRANSIENT_STATUSES:
            return TemporarilyUnavailable(
                f"GitHub API temporarily unavailable (HTTP {status}): {remote}",
                http_status=status,
            )
        return UnexpectedResponse(
            f"GitHub API request failed (HTTP {status}): {remote}",
            http_status=status,
        )
