"""
Error types and common error messages.

Message strings are module constants so the client, the outcomes and the
tests refer to the same text.
"""

from typing import Any

# Configuration errors
ERROR_MISSING_APPID = "appid is not provided"
ERROR_MISSING_MCH_ID = "mch_id is not provided"
ERROR_MISSING_KEY = "key is not provided"
ERROR_UNSUPPORTED_SIGN_TYPE = 'sign type only supports "MD5" and "HMAC-SHA256"'
ERROR_UNKNOWN_ENDPOINT = "Unknown endpoint"
ERROR_INVALID_FIELD_NAME = "Invalid field name"

# Remote errors
ERROR_SIGNATURE_INVALID = "Response signature verification failed"
ERROR_DOWNLOAD_BILL_FAILED = "Bill download failed"
ERROR_UNKNOWN_BUSINESS_FAILURE = "Gateway reported failure"
ERROR_TRANSPORT = "Gateway request failed"
ERROR_MISSING_PREPAY_ID = "Order response carries no prepay_id"
ERROR_CERTIFICATE = "Merchant certificate could not be loaded"

# Codes attached to errors raised locally (gateway codes are passed through as-is)
CODE_CONFIGURATION = "CONFIGURATION_ERROR"
CODE_TRANSPORT = "TRANSPORT_ERROR"
CODE_DECODE = "DECODE_ERROR"
CODE_SIGNATURE = "SIGNATURE_INVALID"
CODE_DOWNLOAD_BILL = "DOWNLOAD_BILL_FAILED"
CODE_MISSING_PREPAY_ID = "PREPAY_ID_MISSING"


class WXPayError(Exception):
    """Base error for everything raised by wxpay."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        retryable: bool = False,
        raw_error: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.raw_error = raw_error


class ConfigurationError(WXPayError, ValueError):
    """Missing credentials, unsupported sign type or other caller misuse. Fatal."""

    def __init__(self, message: str, raw_error: Any = None) -> None:
        super().__init__(message, code=CODE_CONFIGURATION, retryable=False, raw_error=raw_error)


class TransportError(WXPayError):
    """Network failure, timeout or server-side HTTP error."""

    def __init__(self, message: str = ERROR_TRANSPORT, raw_error: Any = None) -> None:
        super().__init__(message, code=CODE_TRANSPORT, retryable=True, raw_error=raw_error)


class BusinessError(WXPayError):
    """The gateway answered, but reported an application-level failure."""

    def __init__(self, message: str | None, code: str | None = None, raw_error: Any = None) -> None:
        super().__init__(
            message or ERROR_UNKNOWN_BUSINESS_FAILURE,
            code=code,
            retryable=False,
            raw_error=raw_error,
        )


class ProtocolDecodeError(BusinessError):
    """Response body is not the flat XML record the gateway is supposed to send."""

    def __init__(self, message: str, raw_error: Any = None) -> None:
        super().__init__(message, code=CODE_DECODE, raw_error=raw_error)


class BillDownloadError(BusinessError):
    """Bill download answered with an XML error document instead of the bill."""

    def __init__(self, message: str | None = None, raw_error: Any = None) -> None:
        super().__init__(message or ERROR_DOWNLOAD_BILL_FAILED, code=CODE_DOWNLOAD_BILL, raw_error=raw_error)


class SignatureError(WXPayError):
    """Response failed authentication. Never downgrade to a warning."""

    def __init__(
        self,
        message: str = ERROR_SIGNATURE_INVALID,
        expected: str | None = None,
        received: str | None = None,
    ) -> None:
        super().__init__(message, code=CODE_SIGNATURE, retryable=False)
        self.expected = expected
        self.received = received
