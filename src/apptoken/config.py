"""Step configuration loaded from environment variables.

Bitrise passes step inputs as plain lowercase environment variables
(``app_id``, ``installation_id``, ``private_pem``, ``permissions``); the
``APPTOKEN_*`` names are accepted as well for other CI systems. Command-line
flags override whatever is found here.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

from apptoken.errors import InputError
from apptoken.exchange import GITHUB_API_URL
from apptoken.models import ExportTarget

DEFAULT_OUTPUT_KEY = "GITHUB_APPS_INSTALLATION_TOKEN"

_TRUTHY = {"1", "true", "yes", "on"}


def _first(env: Mapping[str, str], *names: str, default: str = "") -> str:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return default


class StepConfig(BaseModel):
    """All step settings. Secrets are kept out of ``repr``."""

    app_id: str = ""
    installation_id: str = ""
    private_key: str = Field(default="", repr=False)
    private_key_file: Path | None = None
    private_key_secret: str = ""
    aws_region: str = Field(default="us-east-1")
    permissions: str = ""
    repositories: list[str] = Field(default_factory=list)
    output_key: str = DEFAULT_OUTPUT_KEY
    output: ExportTarget = ExportTarget.AUTO
    api_url: str = GITHUB_API_URL
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> StepConfig:
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ

        repos_raw = _first(env, "APPTOKEN_REPOSITORIES")
        key_file = _first(env, "APPTOKEN_PRIVATE_KEY_FILE")
        output_raw = _first(env, "APPTOKEN_OUTPUT", default=ExportTarget.AUTO).lower()
        try:
            output = ExportTarget(output_raw)
        except ValueError:
            choices = ", ".join(t.value for t in ExportTarget)
            raise InputError(
                f"APPTOKEN_OUTPUT must be one of {choices}: received '{output_raw}'"
            ) from None

        return cls(
            app_id=_first(env, "app_id", "APPTOKEN_APP_ID").strip(),
            installation_id=_first(env, "installation_id", "APPTOKEN_INSTALLATION_ID").strip(),
            private_key=_first(env, "private_pem", "APPTOKEN_PRIVATE_KEY"),
            private_key_file=Path(key_file) if key_file else None,
            private_key_secret=_first(env, "APPTOKEN_PRIVATE_KEY_SECRET"),
            aws_region=_first(env, "AWS_REGION", default="us-east-1"),
            permissions=_first(env, "permissions", "APPTOKEN_PERMISSIONS"),
            repositories=[repos_raw] if repos_raw else [],
            output_key=_first(env, "APPTOKEN_OUTPUT_KEY", default=DEFAULT_OUTPUT_KEY),
            output=output,
            api_url=_first(env, "GITHUB_API_URL", default=GITHUB_API_URL),
            debug=_first(env, "APPTOKEN_DEBUG").lower() in _TRUTHY,
        )
