"""Hand the minted token to the invoking CI environment."""

# ruff: noqa: T201

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from collections.abc import Mapping
from pathlib import Path

from apptoken.errors import ExportError
from apptoken.models import ExportTarget

logger = logging.getLogger(__name__)

_OUTPUT_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def resolve_target(target: ExportTarget, environ: Mapping[str, str] | None = None) -> ExportTarget:
    """Pick a concrete target for ``auto``: envman, then GitHub Actions, then stdout."""
    if target != ExportTarget.AUTO:
        return target
    env = os.environ if environ is None else environ
    if shutil.which("envman"):
        return ExportTarget.ENVMAN
    if env.get("GITHUB_OUTPUT"):
        return ExportTarget.GITHUB
    return ExportTarget.STDOUT


def _export_envman(key: str, token: str) -> None:
    try:
        result = subprocess.run(
            ["envman", "add", "--key", key],
            input=token,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError:
        raise ExportError("Failed to export token to environment: envman not found on PATH") from None
    if result.returncode != 0:
        raise ExportError(
            "Failed to export token to environment: envman returned non-zero exit code "
            f"{result.returncode}"
        )


def _export_github(key: str, token: str, env: Mapping[str, str]) -> None:
    output_file = env.get("GITHUB_OUTPUT")
    if not output_file:
        raise ExportError("Failed to export token: GITHUB_OUTPUT is not set")
    # Registered before the value is written anywhere the runner might echo it.
    print(f"::add-mask::{token}", flush=True)
    try:
        with Path(output_file).open("a") as f:
            f.write(f"{key}={token}\n")
    except OSError as exc:
        raise ExportError(f"Failed to write {output_file}: {exc.strerror}") from None


def export_token(
    key: str,
    token: str,
    target: ExportTarget = ExportTarget.AUTO,
    *,
    environ: Mapping[str, str] | None = None,
) -> ExportTarget:
    """Export *token* under *key*; returns the target actually used."""
    if not _OUTPUT_KEY.fullmatch(key):
        raise ExportError(f"Invalid output variable name: '{key}'")

    env = os.environ if environ is None else environ
    resolved = resolve_target(target, env)
    logger.debug("Exporting token via %s", resolved)

    if resolved == ExportTarget.ENVMAN:
        _export_envman(key, token)
    elif resolved == ExportTarget.GITHUB:
        _export_github(key, token, env)
    else:
        print(token, flush=True)
    return resolved
