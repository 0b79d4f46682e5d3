"""Protocol constants, enums and the endpoint catalogue."""
from dataclasses import dataclass, field
from enum import Enum

from .errors import ERROR_UNSUPPORTED_SIGN_TYPE, ConfigurationError

DEFAULT_API_BASE_URL = "https://api.mch.weixin.qq.com"

# Value of return_code / result_code when the gateway accepted the call
SUCCESS = "SUCCESS"
FAIL = "FAIL"

# Field names the protocol layer reads or writes itself
SIGN_FIELD = "sign"
SIGN_TYPE_FIELD = "sign_type"
NONCE_FIELD = "nonce_str"
RETURN_CODE_FIELD = "return_code"
RETURN_MSG_FIELD = "return_msg"
RESULT_CODE_FIELD = "result_code"
ERR_CODE_FIELD = "err_code"
ERR_CODE_DES_FIELD = "err_code_des"
PREPAY_ID_FIELD = "prepay_id"

NONCE_LENGTH = 16
NONCE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"


class SignType(str, Enum):
    """Supported signature schemes (value is the wire name)."""
    MD5 = "MD5"
    HMAC_SHA256 = "HMAC-SHA256"


# Wire name aliases (input -> canonical)
SIGN_TYPE_ALIASES: dict[str, str] = {
    "md5": SignType.MD5.value,
    "hmac-sha256": SignType.HMAC_SHA256.value,
    "hmac_sha256": SignType.HMAC_SHA256.value,
}


def normalize_sign_type(sign_type: "str | SignType | None") -> SignType:
    """
    Parse a sign type name into SignType.

    Args:
        sign_type: Wire name (any case), SignType member, or None for the default

    Returns:
        SignType member (MD5 when sign_type is empty)

    Raises:
        ConfigurationError: If the name is not a supported scheme

    Example:
        normalize_sign_type("hmac-sha256") -> SignType.HMAC_SHA256
    """
    if isinstance(sign_type, SignType):
        return sign_type
    if not sign_type:
        return SignType.MD5

    normalized = str(sign_type).strip().lower()
    canonical = SIGN_TYPE_ALIASES.get(normalized)
    if canonical is None:
        raise ConfigurationError(f"{ERROR_UNSUPPORTED_SIGN_TYPE}, got {sign_type!r}")
    return SignType(canonical)


@dataclass(frozen=True)
class Endpoint:
    """One gateway operation: a fixed path plus default fields merged under caller params."""
    name: str
    path: str
    defaults: dict[str, str] = field(default_factory=dict)
    # Config attributes copied into the defaults when set (field name -> WXPayConfig attribute)
    config_defaults: dict[str, str] = field(default_factory=dict)


ENDPOINTS: dict[str, Endpoint] = {
    "unified_order": Endpoint(
        name="unified_order",
        path="/pay/unifiedorder",
        config_defaults={
            "notify_url": "notify_url",
            "spbill_create_ip": "spbill_create_ip",
        },
    ),
    "query_order": Endpoint(name="query_order", path="/pay/orderquery"),
    "close_order": Endpoint(name="close_order", path="/pay/closeorder"),
    "query_refund": Endpoint(name="query_refund", path="/pay/refundquery"),
    "download_bill": Endpoint(
        name="download_bill",
        path="/pay/downloadbill",
        defaults={"bill_type": "ALL"},
    ),
}
