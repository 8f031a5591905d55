"""Validation and normalization of step inputs.

Everything here turns loosely formatted CI inputs into the plain values the
token pipeline expects: numeric id strings, a clean PEM, and a
``dict[str, str]`` of permissions.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping

import yaml

from apptoken.config import StepConfig
from apptoken.errors import InputError
from apptoken.secret_store import get_github_app_private_key

_NUMERIC = re.compile(r"[0-9]+")
_PEM_BEGIN = re.compile(r"-----BEGIN[A-Z ]*PRIVATE KEY-----")
_PEM_END = re.compile(r"-----END[A-Z ]*PRIVATE KEY-----")


def validate_numeric_id(value: str, *, label: str, input_name: str) -> str:
    """Require a non-empty, digits-only id."""
    value = value.strip()
    if not value:
        raise InputError(f"{label} is required: set the {input_name} input parameter")
    if not _NUMERIC.fullmatch(value):
        raise InputError(f"{label} must be numeric: received '{value}'")
    return value


def normalize_pem(pem: str) -> str:
    """Trim every line and drop carriage returns.

    Keys pasted into single-line secret fields often carry literal ``\\n``
    sequences instead of newlines; those are expanded first.
    """
    if "\n" not in pem.strip() and "\\n" in pem:
        pem = pem.replace("\\n", "\n")
    lines = [line.strip() for line in pem.replace("\r", "").split("\n")]
    return "\n".join(lines).strip() + "\n"


def validate_pem(pem: str) -> str:
    """Require BEGIN/END ... PRIVATE KEY markers."""
    if not pem.strip():
        raise InputError("Private PEM key is required: set the private_pem input parameter")
    if not _PEM_BEGIN.search(pem) or not _PEM_END.search(pem):
        raise InputError(
            "Invalid PEM format: ensure the key includes BEGIN/END RSA PRIVATE KEY markers"
        )
    return pem


def _load_yaml(text: str) -> object:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        problem = getattr(exc, "problem", None) or exc
        raise InputError(
            f"Invalid permissions format: must be a JSON object or YAML hash ({problem})"
        ) from None


def parse_permissions(raw: str | Mapping | None) -> dict[str, str] | None:
    """Parse a permissions input into ``{"contents": "read", ...}``.

    Accepts an already-parsed mapping, a JSON object string, or a YAML hash.
    Returns None when nothing was supplied.
    """
    if raw is None:
        return None

    if isinstance(raw, Mapping):
        data: object = raw
    else:
        text = raw.strip()
        if not text:
            return None
        if text.startswith("{"):
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                # YAML flow mapping, e.g. {contents: read}
                data = _load_yaml(text)
        else:
            data = _load_yaml(text)

    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise InputError(
            "Invalid permissions format: expected a mapping of permission name to "
            f"access level, got {type(data).__name__}"
        )

    permissions: dict[str, str] = {}
    for name, level in data.items():
        if not isinstance(name, str) or not name.strip():
            raise InputError(f"Invalid permission name: {name!r}")
        if not isinstance(level, str) or not level.strip():
            raise InputError(
                f"Invalid access level for permission '{name}': expected a string "
                f"such as read or write, got {level!r}"
            )
        permissions[name.strip()] = level.strip()
    return permissions


def parse_repositories(values: Iterable[str]) -> list[str]:
    """Split comma/newline separated names; "owner/repo" is reduced to "repo"."""
    names: list[str] = []
    for value in values:
        for part in value.replace("\n", ",").split(","):
            part = part.strip()
            if not part:
                continue
            _owner, _, name = part.rpartition("/")
            if name not in names:
                names.append(name)
    return names


def resolve_private_key(config: StepConfig) -> str:
    """Return the normalized PEM from exactly one configured source."""
    sources = [
        bool(config.private_key),
        config.private_key_file is not None,
        bool(config.private_key_secret),
    ]
    if not any(sources):
        raise InputError("Private PEM key is required: set the private_pem input parameter")
    if sum(sources) > 1:
        raise InputError(
            "Provide only one of private_pem, APPTOKEN_PRIVATE_KEY_FILE "
            "or APPTOKEN_PRIVATE_KEY_SECRET"
        )

    if config.private_key:
        pem = config.private_key
    elif config.private_key_file is not None:
        try:
            pem = config.private_key_file.read_text()
        except OSError as exc:
            raise InputError(
                f"Could not read private key file {config.private_key_file}: {exc.strerror}"
            ) from None
    else:
        pem = get_github_app_private_key(config.private_key_secret, config.aws_region)

    return validate_pem(normalize_pem(pem))
