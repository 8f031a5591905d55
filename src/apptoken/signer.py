"""RS256 signing of GitHub App assertions.

Signing goes through PyJWT's ``RSAAlgorithm`` (RSASSA-PKCS1-v1_5 over
SHA-256, backed by ``cryptography``), which takes the PEM straight from
memory. The key is only ever loaded inside a ``SigningKey`` block and the
reference is dropped when the block exits, whatever the outcome.
"""

from __future__ import annotations

import logging
from types import TracebackType

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from jwt.algorithms import RSAAlgorithm
from jwt.exceptions import InvalidKeyError
from jwt.utils import base64url_encode

from apptoken.assertion import Assertion, UnsignedAssertion
from apptoken.errors import SigningError

logger = logging.getLogger(__name__)

_RS256 = RSAAlgorithm(RSAAlgorithm.SHA256)


def load_private_key(pem: str | bytes) -> RSAPrivateKey:
    """Parse an unencrypted PEM RSA private key.

    Raises:
        SigningError: The PEM is malformed, encrypted, public-only, or not RSA.
    """
    try:
        key = _RS256.prepare_key(pem)
    except (InvalidKeyError, ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError(f"Private key could not be loaded: {type(exc).__name__}") from exc

    if not isinstance(key, RSAPrivateKey):
        raise SigningError(
            f"Private key is not an RSA private key (got {type(key).__name__})"
        )
    return key


def sign(signing_input: str, key: RSAPrivateKey) -> str:
    """Sign *signing_input* and return the base64url signature segment."""
    try:
        signature = _RS256.sign(signing_input.encode("ascii"), key)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningError(f"RSA-SHA256 signing failed: {type(exc).__name__}") from exc
    return base64url_encode(signature).decode("ascii")


class SigningKey:
    """Scoped handle on the app's private key.

    Usage::

        with SigningKey(pem) as key:
            assertion = sign_assertion(unsigned, key)
    """

    def __init__(self, pem: str) -> None:
        self._pem = pem
        self._key: RSAPrivateKey | None = None

    def __enter__(self) -> SigningKey:
        self._key = load_private_key(self._pem)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    @property
    def loaded(self) -> bool:
        return self._key is not None

    def release(self) -> None:
        if self._key is not None:
            logger.debug("Releasing signing key")
        self._key = None

    def sign(self, signing_input: str) -> str:
        if self._key is None:
            raise SigningError("Signing key used outside of its scope")
        return sign(signing_input, self._key)


def sign_assertion(unsigned: UnsignedAssertion, key: SigningKey) -> Assertion:
    """Attach the signature segment to *unsigned*."""
    signature = key.sign(unsigned.signing_input)
    return Assertion(
        token=f"{unsigned.signing_input}.{signature}",
        iat=unsigned.iat,
        exp=unsigned.exp,
    )
