"""GitHub App JWT (assertion) construction.

Only the one claim set GitHub asks for is produced::

    header  {"alg": "RS256", "typ": "JWT"}
    claims  {"iat": <now>, "exp": <now + 300>, "iss": "<app id>"}

GitHub accepts a lifetime of up to 600 seconds. Using 300 leaves a
symmetric five-minute budget for clock skew between this host and GitHub.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from jwt.utils import base64url_encode

JWT_LIFETIME_SECONDS = 300
GITHUB_MAX_JWT_LIFETIME_SECONDS = 600

HEADER = {"alg": "RS256", "typ": "JWT"}


def encode_segment(obj: dict) -> str:
    """Compact JSON, base64url-encoded without padding."""
    raw = json.dumps(obj, separators=(",", ":")).encode("utf-8")
    return base64url_encode(raw).decode("ascii")


@dataclass(frozen=True)
class UnsignedAssertion:
    """Header and claims segments, ready to be signed."""

    header_segment: str
    claims_segment: str
    iat: int
    exp: int

    @property
    def signing_input(self) -> str:
        return f"{self.header_segment}.{self.claims_segment}"


@dataclass(frozen=True)
class Assertion:
    """A signed JWT. The token itself is kept out of ``repr``."""

    token: str = field(repr=False)
    iat: int
    exp: int


def build_assertion(app_id: str, instant: int) -> UnsignedAssertion:
    """Build the header and claims for *app_id* issued at *instant*."""
    claims = {"iat": instant, "exp": instant + JWT_LIFETIME_SECONDS, "iss": app_id}
    return UnsignedAssertion(
        header_segment=encode_segment(HEADER),
        claims_segment=encode_segment(claims),
        iat=claims["iat"],
        exp=claims["exp"],
    )
