"""
Request signing and response verification.

Sign string format (gateway-defined):
    k1=v1&k2=v2&...&key=<merchant key>

Keys are sorted ascending, empty values and the sign field itself are left
out, and values are concatenated literally without escaping.
"""

import hashlib
import hmac
import secrets
import time
from collections.abc import Iterable, Mapping
from typing import Any

from .constants import NONCE_ALPHABET, NONCE_LENGTH, SIGN_FIELD, SignType, normalize_sign_type

# Values dropped from the canonical string
_IGNORED_VALUES = (None, "")


def stringify_value(value: Any) -> str:
    """Text form of a scalar, shared by the sign string and the XML body."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def canonical_string(params: Mapping[str, Any], exclude: Iterable[str] = (SIGN_FIELD,)) -> str:
    """
    Serialize a flat parameter set into the string that gets signed.

    Args:
        params: Flat mapping of field name to scalar value
        exclude: Field names to leave out; sign is always left out

    Returns:
        "k1=v1&k2=v2..." with keys in ascending code point order
    """
    excluded = set(exclude)
    excluded.add(SIGN_FIELD)
    pairs = []
    for key in sorted(params):
        if key in excluded or params[key] is None:
            continue
        text = stringify_value(params[key])
        if text not in _IGNORED_VALUES:
            pairs.append(f"{key}={text}")
    return "&".join(pairs)


def sign(params: Mapping[str, Any], key: str, sign_type: "str | SignType | None" = SignType.MD5) -> str:
    """
    Compute the uppercase hex signature of a parameter set.

    Raises:
        ConfigurationError: If sign_type is not MD5 or HMAC-SHA256
    """
    scheme = normalize_sign_type(sign_type)
    payload = f"{canonical_string(params)}&key={key}".encode("utf-8")

    if scheme is SignType.MD5:
        # nosec B324 - MD5 is mandated by the gateway's default sign type
        digest = hashlib.md5(payload).hexdigest()
    elif scheme is SignType.HMAC_SHA256:
        digest = hmac.new(key.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    else:  # pragma: no cover - SignType is closed
        raise AssertionError(f"unhandled sign type {scheme}")

    return digest.upper()


def verify_signature(
    params: Mapping[str, Any],
    key: str,
    sign_type: "str | SignType | None" = SignType.MD5,
) -> bool:
    """
    Check the sign field of a received parameter set.

    The digest is re-derived from every other field and compared in constant
    time. A missing or empty sign never verifies.
    """
    received = params.get(SIGN_FIELD)
    if not received:
        return False
    expected = sign(params, key, sign_type)
    # Bytes, since compare_digest rejects non-ASCII str
    return hmac.compare_digest(expected.encode("utf-8"), stringify_value(received).encode("utf-8"))


def generate_nonce(length: int = NONCE_LENGTH) -> str:
    """Random alphanumeric string for nonce_str / nonceStr."""
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def generate_timestamp() -> str:
    """Current time as whole epoch seconds."""
    return str(int(time.time()))
