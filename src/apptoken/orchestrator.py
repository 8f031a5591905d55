"""End-to-end installation token issuance.

    clock -> assertion -> signer -> exchange (-> one retry) -> token

Each attempt reads the clock again and signs a new JWT, so a retry never
reuses a stale assertion. The private key is loaded only for the duration
of the signing call and released on every exit path.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence

from apptoken.assertion import build_assertion
from apptoken.clock import now
from apptoken.errors import AuthenticationRejected
from apptoken.exchange import GITHUB_API_URL, ExchangeClient
from apptoken.models import Identity, InstallationToken
from apptoken.retry import call_with_single_retry
from apptoken.signer import SigningKey, sign_assertion

logger = logging.getLogger(__name__)


def _observe(clock: Callable[[], float]) -> int | None:
    """Raw clock reading for diagnostics; never raises."""
    try:
        return int(clock())
    except (OSError, OverflowError, ValueError):
        return None


def issue_installation_token(
    identity: Identity,
    private_key_pem: str,
    permissions: Mapping[str, str] | None = None,
    *,
    repositories: Sequence[str] | None = None,
    api_url: str = GITHUB_API_URL,
    client: ExchangeClient | None = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> InstallationToken:
    """Mint an installation access token for *identity*.

    Args:
        identity: App id and installation id.
        private_key_pem: The app's PEM-encoded RSA private key.
        permissions: Optional permission restriction; empty means none.
        repositories: Optional repository names to scope the token to.
        api_url: GitHub REST API root, for GitHub Enterprise Server.
        client: Exchange client to use; one is created (and closed) if omitted.
        clock: Epoch-seconds source.
        sleep: Used for the retry delay.

    Returns:
        The installation token (~1 hour validity, set by GitHub).

    Raises:
        ClockError: The host clock is unreadable or implausible.
        SigningError: The private key is unusable.
        ExchangeError: GitHub refused or could not be reached.
    """
    owns_client = client is None
    exchange_client = client or ExchangeClient(api_url)

    def attempt(number: int) -> InstallationToken:
        instant = now(clock)
        unsigned = build_assertion(identity.app_id, instant)
        with SigningKey(private_key_pem) as key:
            assertion = sign_assertion(unsigned, key)

        logger.info(
            "Requesting installation token for installation %s (attempt %d)",
            identity.installation_id,
            number,
        )
        try:
            return exchange_client.exchange(
                identity.installation_id, assertion, permissions, repositories
            )
        except AuthenticationRejected as exc:
            exc.observed_at = _observe(clock)
            logger.warning(
                "JWT rejected: iat=%d exp=%d now=%s (a large gap between now and "
                "iat points at clock skew, otherwise check the app id and key)",
                assertion.iat,
                assertion.exp,
                exc.observed_at,
            )
            raise

    try:
        token = call_with_single_retry(attempt, sleep=sleep)
    finally:
        if owns_client:
            exchange_client.close()

    logger.info("Installation token expires at %s", token.expires_at.isoformat())
    return token
