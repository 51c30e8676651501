"""Opaque, tamper-resistant page tokens.

A page token is the row marker of the last row returned, encrypted and
authenticated with Fernet. Only this module reads or builds tokens.
"""

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from metastore.errors import EncodingError, InvalidArgument
from metastore.utils.logging import get_logger

logger = get_logger(__name__)


def generate_pagination_key() -> str:
    """Return a new url-safe base64 Fernet key."""
    return Fernet.generate_key().decode("ascii")


def resolve_pagination_key(configured: Optional[str]) -> str:
    """
    Validate the configured pagination key or generate one.

    All instances serving the same list endpoints must share one key, so a
    generated key only works for single-instance deployments. It is logged so
    it can be copied into configuration.

    Args:
        configured: Key from configuration (may be None or empty)

    Returns:
        A well-formed Fernet key

    Raises:
        ValueError: If the configured key is not 32 url-safe base64-encoded bytes
    """
    if not configured:
        key = generate_pagination_key()
        logger.warning(
            f"Pagination key is empty, generated one for this process: {key} "
            "(set pagination.key to share page tokens across instances)"
        )
        return key
    try:
        Fernet(configured)
    except (ValueError, TypeError) as e:
        raise ValueError("Invalid pagination key; must be 32 url-safe base64-encoded bytes") from e
    return configured


class CursorCodec:
    """Stateless mapping between row markers and page tokens for one key."""

    def __init__(self, key: str):
        self._fernet = Fernet(key)

    def encode(self, marker: int) -> str:
        """
        Encrypt a row marker into a url-safe token.

        Raises:
            EncodingError: If encryption fails
        """
        try:
            token = self._fernet.encrypt(str(int(marker)).encode("ascii"))
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Failed to encode page token: {e}") from e
        return token.decode("ascii")

    def _decrypt(self, token: str) -> int:
        plaintext = self._fernet.decrypt(token.encode("ascii"))
        marker = int(plaintext.decode("ascii"))
        if marker < 0:
            raise ValueError(f"negative marker {marker}")
        return marker

    def decode(self, token: str, default: int = 0) -> int:
        """
        Decrypt a token back into a row marker.

        An empty token, or any token that fails authentication or parsing
        (foreign key, tampering, truncation), yields ``default``.
        """
        if not token:
            return default
        try:
            return self._decrypt(token)
        except (InvalidToken, UnicodeError, ValueError, TypeError):
            logger.debug("Ignoring undecodable page token")
            return default

    def decode_strict(self, token: str, default: int = 0) -> int:
        """Like decode() but raises InvalidArgument for a bad non-empty token."""
        if not token:
            return default
        try:
            return self._decrypt(token)
        except (InvalidToken, UnicodeError, ValueError, TypeError) as e:
            raise InvalidArgument("Invalid page token") from e


def encode_marker(marker: int, key: str) -> str:
    return CursorCodec(key).encode(marker)


def decode_marker(token: str, key: str, default: int = 0) -> int:
    """Decode ``token`` with ``key``; a malformed key also falls back to ``default``."""
    if not token:
        return default
    try:
        codec = CursorCodec(key)
    except (ValueError, TypeError):
        return default
    return codec.decode(token, default)
