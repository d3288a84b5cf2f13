"""
Shopify HMAC-SHA256 signatures.
Webhooks: base64 digest of the raw body (X-Shopify-Hmac-Sha256).
OAuth redirects: hex digest of the sorted key=value query pairs, hmac excluded.
"""
import base64
import binascii
import hashlib
import hmac
import logging
from typing import Iterable, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

QueryParams = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _digest(message: bytes, secret: str) -> bytes:
    return hmac.new(_encode(secret), message, hashlib.sha256).digest()


def _encode(text: str) -> bytes:
    # Lone surrogates must not raise; they simply fail to match
    return text.encode("utf-8", errors="surrogatepass")


def _as_bytes(body: Union[bytes, str]) -> bytes:
    return _encode(body) if isinstance(body, str) else bytes(body)


def compute_webhook_hmac(body: Union[bytes, str], secret: str) -> str:
    """Base64 HMAC-SHA256 of the raw body, as Shopify sends it."""
    return base64.b64encode(_digest(_as_bytes(body), secret)).decode("ascii")


def verify_webhook_hmac(body: Union[bytes, str], hmac_header: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify X-Shopify-Hmac-Sha256 against the raw, unparsed body.
    Malformed or missing signatures compare as False.
    """
    if not secret or not hmac_header:
        return False
    try:
        supplied = base64.b64decode(hmac_header.strip(), validate=True)
    except (binascii.Error, ValueError):
        logger.warning("Webhook HMAC verification failed: undecodable signature")
        return False
    expected = _digest(_as_bytes(body), secret)
    return hmac.compare_digest(expected, supplied)


def _pairs(params: QueryParams) -> list[Tuple[str, str]]:
    items = params.items() if isinstance(params, Mapping) else params
    return [(str(k), str(v)) for k, v in items]


def oauth_message(params: QueryParams) -> str:
    """Sorted key=value pairs joined by '&', without the hmac parameter."""
    entries = [f"{key}={value}" for key, value in _pairs(params) if key != "hmac"]
    return "&".join(sorted(entries))


def compute_oauth_hmac(params: QueryParams, secret: str) -> str:
    return _digest(_encode(oauth_message(params)), secret).hex()


def verify_oauth_hmac(params: QueryParams, secret: Optional[str]) -> bool:
    """Verify the hex `hmac` query parameter of an OAuth redirect."""
    if not secret:
        return False
    supplied_hex = next((v for k, v in _pairs(params) if k == "hmac"), None)
    if not supplied_hex:
        return False
    try:
        supplied = bytes.fromhex(supplied_hex)
    except ValueError:
        logger.warning("OAuth HMAC verification failed: signature is not hex")
        return False
    expected = _digest(_encode(oauth_message(params)), secret)
    is_valid = hmac.compare_digest(expected, supplied)
    if not is_valid:
        logger.warning("OAuth HMAC verification failed: received=%s...", supplied_hex[:10])
    return is_valid
