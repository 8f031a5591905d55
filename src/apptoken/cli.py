"""Command-line entry point: mint a GitHub App installation token for a CI step.

Usage:
    apptoken --app-id 123456 --installation-id 7890 --private-key-file app.pem
    apptoken --permissions '{"contents": "read"}'

Every flag falls back to the matching environment variable (see
``apptoken.config``), so as a Bitrise step it runs with no arguments.

Exit codes:
    0  token exported
    1  invalid input, unusable clock or private key
    2  GitHub API error
    3  token could not be exported
"""

# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path

from apptoken.config import StepConfig
from apptoken.errors import (
    AppTokenError,
    AuthenticationRejected,
    ClockError,
    ExchangeError,
    ExportError,
    InputError,
    InstallationNotFound,
    MalformedPermissionRequest,
    NetworkFailure,
    ScopeRejected,
    SigningError,
    TemporarilyUnavailable,
)
from apptoken.inputs import (
    parse_permissions,
    parse_repositories,
    resolve_private_key,
    validate_numeric_id,
)
from apptoken.models import ExportTarget, Identity
from apptoken.orchestrator import issue_installation_token
from apptoken.outputs import export_token

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_API_ERROR = 2
EXIT_EXPORT_ERROR = 3

_HINTS: dict[type[ExchangeError], str] = {
    AuthenticationRejected: (
        "Check the app id and private key. If they are right, compare iat/now "
        "above with the real time: the host clock may be off."
    ),
    InstallationNotFound: "Check installation_id: the app must be installed on the account.",
    ScopeRejected: "The app may not have access to the requested permissions.",
    MalformedPermissionRequest: "Check the permissions format and permission names.",
    TemporarilyUnavailable: "GitHub is rate limiting or degraded; rerun the step later.",
    NetworkFailure: "Check that the build host can reach the GitHub API.",
}


def _err(*lines: str) -> None:
    for line in lines:
        print(line, file=sys.stderr)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apptoken",
        description="Generate a GitHub App installation access token for a CI step.",
    )
    parser.add_argument("--app-id", help="GitHub App ID (env: app_id)")
    parser.add_argument("--installation-id", help="Installation ID (env: installation_id)")

    key = parser.add_mutually_exclusive_group()
    key.add_argument(
        "--private-key",
        help="PEM private key contents (env: private_pem); prefer a file or secret",
    )
    key.add_argument(
        "--private-key-file",
        type=Path,
        help="Path to the PEM private key (env: APPTOKEN_PRIVATE_KEY_FILE)",
    )
    key.add_argument(
        "--private-key-secret",
        help="AWS Secrets Manager secret holding the PEM (env: APPTOKEN_PRIVATE_KEY_SECRET)",
    )

    parser.add_argument(
        "--permissions",
        help="JSON object or YAML hash, e.g. '{\"contents\": \"read\"}' (env: permissions)",
    )
    parser.add_argument(
        "--repository",
        dest="repositories",
        action="append",
        default=[],
        help="Scope the token to this repository; repeatable (env: APPTOKEN_REPOSITORIES)",
    )
    parser.add_argument(
        "--output-key",
        help="Variable name to export the token under (default: GITHUB_APPS_INSTALLATION_TOKEN)",
    )
    parser.add_argument(
        "--output",
        type=ExportTarget,
        choices=list(ExportTarget),
        help="Export mechanism (default: auto)",
    )
    parser.add_argument("--api-url", help="GitHub API root (env: GITHUB_API_URL)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def _load_config(args: argparse.Namespace) -> StepConfig:
    """Environment first, then command-line overrides."""
    config = StepConfig.from_env()
    overrides: dict = {}

    for name in ("app_id", "installation_id", "permissions", "output_key", "output", "api_url"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value

    key_sources = {
        "private_key": args.private_key,
        "private_key_file": args.private_key_file,
        "private_key_secret": args.private_key_secret,
    }
    if any(v is not None for v in key_sources.values()):
        # A key given on the command line replaces every key source from the environment.
        overrides.update(private_key="", private_key_file=None, private_key_secret="")
        overrides.update({k: v for k, v in key_sources.items() if v is not None})

    if args.repositories:
        overrides["repositories"] = args.repositories
    if args.debug:
        overrides["debug"] = True

    return config.model_copy(update=overrides)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # Only show detailed logs for our own code
    logging.getLogger("apptoken").setLevel(logging.DEBUG if debug else logging.INFO)


def _raise_system_exit(signum: int, frame: object) -> None:
    raise SystemExit(128 + signum)


def _report_exchange_error(exc: ExchangeError) -> None:
    if isinstance(exc, TemporarilyUnavailable) and exc.attempts > 1:
        _err(f"Error: GitHub API unavailable after retry (HTTP {exc.http_status})")
    else:
        _err(f"Error: {exc.kind.value.replace('_', ' ').capitalize()}")
    _err(f"Details: {exc}")
    hint = _HINTS.get(type(exc))
    if hint:
        _err(f"Hint: {hint}")


def run(config: StepConfig) -> int:
    """Validate inputs, mint the token, export it. Returns the exit code."""
    _err("GitHub Apps Installation Token Generator", "=" * 40)

    try:
        identity = Identity(
            app_id=validate_numeric_id(config.app_id, label="App ID", input_name="app_id"),
            installation_id=validate_numeric_id(
                config.installation_id, label="Installation ID", input_name="installation_id"
            ),
        )
        private_key_pem = resolve_private_key(config)
        permissions = parse_permissions(config.permissions)
        repositories = parse_repositories(config.repositories)
        _err("Validation complete")

        token = issue_installation_token(
            identity,
            private_key_pem,
            permissions,
            repositories=repositories,
            api_url=config.api_url,
        )
        target = export_token(config.output_key, token.token.get_secret_value(), config.output)
    except (InputError, ClockError, SigningError) as exc:
        _err(f"Error: {exc}")
        return EXIT_VALIDATION_ERROR
    except ExchangeError as exc:
        _report_exchange_error(exc)
        return EXIT_API_ERROR
    except ExportError as exc:
        _err(f"Error: {exc}")
        return EXIT_EXPORT_ERROR
    except AppTokenError as exc:
        _err(f"Error: {exc}")
        return EXIT_VALIDATION_ERROR

    _err(
        "Success: GitHub Apps Installation Token generated",
        f"Token expires at: {token.expires_at.isoformat()}",
    )
    if token.permissions:
        granted = ", ".join(f"{k}={v}" for k, v in sorted(token.permissions.items()))
        _err(f"Granted permissions: {granted}")
    _err(f"Token exported to: {config.output_key} ({target.value})")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
    except InputError as exc:
        _err(f"Error: {exc}")
        sys.exit(EXIT_VALIDATION_ERROR)

    _configure_logging(config.debug)
    # SIGTERM unwinds like Ctrl-C so scoped cleanup (key, HTTP client) still runs.
    signal.signal(signal.SIGTERM, _raise_system_exit)

    sys.exit(run(config))


if __name__ == "__main__":
    main()
