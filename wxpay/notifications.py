"""
Payment result notifications.

The gateway POSTs the payment result to notify_url as the same signed flat
XML it uses for responses, and expects an XML acknowledgement back. Until
the acknowledgement says SUCCESS it keeps retrying, so the handler must be
idempotent on out_trade_no.
"""

from typing import Optional

from .client import classify_response
from .constants import FAIL, RETURN_CODE_FIELD, RETURN_MSG_FIELD, SUCCESS, SignType
from .logging import get_logger, sanitize_id_for_logging
from .outcomes import ResponseOutcome
from .xml_codec import build_xml

logger = get_logger(__name__)


def parse_notification(
    body: "bytes | str",
    key: str,
    sign_type: "str | SignType | None" = None,
) -> ResponseOutcome:
    """
    Decode and authenticate a notification body.

    Same rules as a call response: decode, return_code, result_code, then the
    signature (using the notification's own sign_type, else `sign_type`,
    else MD5). Only a Success outcome may be acted upon.
    """
    outcome = classify_response(body, key, sign_type)
    params = getattr(outcome, "params", None) or {}
    logger.info(
        "Payment notification: %s (out_trade_no=%s, transaction_id=%s)",
        outcome.kind.value,
        sanitize_id_for_logging(params.get("out_trade_no")),
        sanitize_id_for_logging(params.get("transaction_id")),
    )
    return outcome


def build_notification_reply(success: bool, message: Optional[str] = None) -> bytes:
    """Acknowledgement body for the gateway (return_code SUCCESS or FAIL)."""
    return build_xml(
        {
            RETURN_CODE_FIELD: SUCCESS if success else FAIL,
            RETURN_MSG_FIELD: message or ("OK" if success else "FAIL"),
        }
    )
