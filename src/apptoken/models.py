"""Data models for the installation-token pipeline."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class FailureKind(enum.StrEnum):
    """Classification of a failed token exchange."""

    AUTHENTICATION_REJECTED = "authentication_rejected"
    INSTALLATION_NOT_FOUND = "installation_not_found"
    SCOPE_REJECTED = "scope_rejected"
    MALFORMED_PERMISSION_REQUEST = "malformed_permission_request"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    NETWORK_FAILURE = "network_failure"
    UNEXPECTED_RESPONSE = "unexpected_response"


class Identity(BaseModel):
    """The GitHub App and the installation it acts on behalf of."""

    model_config = ConfigDict(frozen=True)

    app_id: str = Field(pattern=r"^[0-9]+$")
    installation_id: str = Field(pattern=r"^[0-9]+$")


class InstallationToken(BaseModel):
    """Successful exchange result (parsed from GitHub's 201 response)."""

    token: SecretStr
    expires_at: datetime
    permissions: dict[str, str] = Field(default_factory=dict)
    repository_selection: str | None = None


class ExportTarget(enum.StrEnum):
    """Where the CLI hands the token to the invoking CI environment."""

    AUTO = "auto"
    ENVMAN = "envman"
    GITHUB = "github"
    STDOUT = "stdout"
