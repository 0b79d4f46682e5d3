"""
wxpay - merchant payment gateway client.

Modules:
- signing: canonical sign string, MD5 / HMAC-SHA256 signatures, nonces
- xml_codec: flat XML records to and from dicts
- client: WXPayClient, the sign -> send -> verify pipeline
- outcomes: tagged results of a call
- notifications: inbound payment notifications
- config: WXPayConfig credentials
- errors: exception hierarchy

Usage:
    from wxpay import WXPayClient

    async with WXPayClient(appid="wx...", mch_id="1900000109", key="...") as client:
        order = await client.query_order({"out_trade_no": "A1"})
"""

from .client import WXPayClient, classify_response
from .config import WXPayConfig, is_configured
from .constants import ENDPOINTS, SUCCESS, Endpoint, SignType, normalize_sign_type
from .errors import (
    BillDownloadError,
    BusinessError,
    ConfigurationError,
    ProtocolDecodeError,
    SignatureError,
    TransportError,
    WXPayError,
)
from .notifications import build_notification_reply, parse_notification
from .outcomes import (
    BusinessFailure,
    OutcomeKind,
    RawResponse,
    ResponseOutcome,
    SignatureInvalid,
    Success,
    TransportFailure,
)
from .signing import canonical_string, generate_nonce, generate_timestamp, sign, verify_signature
from .transport import HttpTransport, TransportResponse
from .xml_codec import build_xml, is_xml, parse_xml

__version__ = "0.1.0"

__all__ = [
    # client
    "WXPayClient", "classify_response",
    # config
    "WXPayConfig", "is_configured",
    # constants
    "ENDPOINTS", "SUCCESS", "Endpoint", "SignType", "normalize_sign_type",
    # errors
    "WXPayError", "ConfigurationError", "TransportError", "BusinessError",
    "ProtocolDecodeError", "BillDownloadError", "SignatureError",
    # notifications
    "parse_notification", "build_notification_reply",
    # outcomes
    "OutcomeKind", "ResponseOutcome", "TransportFailure", "BusinessFailure",
    "SignatureInvalid", "Success", "RawResponse",
    # signing
    "canonical_string", "sign", "verify_signature", "generate_nonce", "generate_timestamp",
    # transport
    "HttpTransport", "TransportResponse",
    # xml
    "build_xml", "parse_xml", "is_xml",
]
