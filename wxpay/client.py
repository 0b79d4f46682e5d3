"""
WXPay protocol client.

Every call runs the same pipeline:
    prepare (defaults + caller params) -> sign -> build XML -> POST
    -> parse XML -> return_code / result_code checks -> verify signature

`execute()` returns a ResponseOutcome and never raises for remote or
transport failures. The endpoint helpers (`unified_order`, `query_order`, ...)
unwrap the outcome and raise the matching WXPayError instead.
"""

from collections.abc import Mapping
from typing import Any, Optional

import httpx
from .config import WXPayConfig
from .constants import (
    ENDPOINTS,
    ERR_CODE_DES_FIELD,
    ERR_CODE_FIELD,
    NONCE_FIELD,
    PREPAY_ID_FIELD,
    RESULT_CODE_FIELD,
    RETURN_CODE_FIELD,
    RETURN_MSG_FIELD,
    SIGN_FIELD,
    SIGN_TYPE_FIELD,
    SUCCESS,
    Endpoint,
    SignType,
    normalize_sign_type,
)
from .errors import (
    CODE_DECODE,
    CODE_MISSING_PREPAY_ID,
    ERROR_MISSING_PREPAY_ID,
    ERROR_TRANSPORT,
    ERROR_UNKNOWN_ENDPOINT,
    BillDownloadError,
    BusinessError,
    ConfigurationError,
    ProtocolDecodeError,
    TransportError,
)
from .logging import get_logger, redact_params, sanitize_id_for_logging, sanitize_string_for_logging
from .outcomes import (
    BusinessFailure,
    RawResponse,
    ResponseOutcome,
    SignatureInvalid,
    Success,
    TransportFailure,
)
from .signing import generate_nonce, generate_timestamp, sign, verify_signature
from .transport import HttpTransport, Transport
from .xml_codec import build_xml, is_xml, parse_xml

logger = get_logger(__name__)


def classify_response(
    body: "bytes | str",
    key: str,
    sign_type: "str | SignType | None" = SignType.MD5,
) -> ResponseOutcome:
    """
    Turn a gateway XML body into an outcome.

    Order matters: a FAIL return_code is reported even when the body carries
    a sign field, and the signature is only checked once both status fields
    say SUCCESS. The scheme is the one the response declares, falling back to
    `sign_type` (normally the scheme used for the request).
    """
    try:
        params = parse_xml(body)
    except ProtocolDecodeError as e:
        logger.warning("Gateway response is not valid XML: %s", sanitize_string_for_logging(e.message))
        return BusinessFailure(code=CODE_DECODE, message=e.message, error=e)

    return_code = params.get(RETURN_CODE_FIELD)
    if return_code != SUCCESS:
        logger.warning(
            "Gateway return_code=%s: %s",
            sanitize_string_for_logging(return_code),
            sanitize_string_for_logging(params.get(RETURN_MSG_FIELD)),
        )
        return BusinessFailure(code=return_code, message=params.get(RETURN_MSG_FIELD), params=params)

    result_code = params.get(RESULT_CODE_FIELD)
    if result_code != SUCCESS:
        logger.warning(
            "Gateway result_code=%s err_code=%s: %s",
            sanitize_string_for_logging(result_code),
            sanitize_string_for_logging(params.get(ERR_CODE_FIELD)),
            sanitize_string_for_logging(params.get(ERR_CODE_DES_FIELD)),
        )
        return BusinessFailure(
            code=params.get(ERR_CODE_FIELD) or result_code,
            message=params.get(ERR_CODE_DES_FIELD),
            params=params,
        )

    received = params.get(SIGN_FIELD)
    try:
        scheme = normalize_sign_type(params.get(SIGN_TYPE_FIELD) or sign_type)
    except ConfigurationError as e:
        logger.error("Gateway response declares unsupported sign type")
        return SignatureInvalid(expected=None, received=received, params=params, reason=e.message)

    if not verify_signature(params, key, scheme):
        expected = sign(params, key, scheme)
        logger.error("Gateway response signature mismatch (sign_type=%s)", scheme.value)
        return SignatureInvalid(expected=expected, received=received, params=params)

    return Success(params=params)


class WXPayClient:
    """
    Async client for the merchant "pay" API.

    Args:
        config: WXPayConfig, or None to pass the credential fields as kwargs
        transport: Anything with `post(url, body, headers, timeout)`; defaults
            to an HttpTransport built from the config
        **kwargs: WXPayConfig fields when config is None

    Raises:
        ConfigurationError: Missing or blank appid / mch_id / key, or a pfx
            certificate that cannot be loaded
    """

    def __init__(
        self,
        config: Optional[WXPayConfig] = None,
        transport: Optional[Transport] = None,
        **kwargs: Any,
    ) -> None:
        if config is None:
            config = WXPayConfig(**kwargs)
        self.config = config

        self._owns_transport = transport is None
        self.transport: Transport = transport or HttpTransport(
            timeout_seconds=config.timeout_seconds,
            cert=config.pfx,
        )

    async def __aenter__(self) -> "WXPayClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self.transport.aclose()

    # ==================== SIGNING ====================

    def sign(self, params: Mapping[str, Any], sign_type: "str | SignType | None" = SignType.MD5) -> str:
        """Signature of `params` with the merchant key."""
        return sign(params, self.config.key, sign_type)

    def verify(self, params: Mapping[str, Any], sign_type: "str | SignType | None" = SignType.MD5) -> bool:
        """Check the sign field of `params` with the merchant key."""
        return verify_signature(params, self.config.key, sign_type)

    # ==================== PIPELINE ====================

    def _resolve_endpoint(self, endpoint: "str | Endpoint") -> tuple[str, dict[str, Any]]:
        """URL and endpoint-specific defaults for an endpoint name, Endpoint, or absolute URL."""
        if isinstance(endpoint, Endpoint):
            target = endpoint
        elif endpoint.startswith(("http://", "https://")):
            return endpoint, {}
        else:
            target = ENDPOINTS.get(endpoint)
            if target is None:
                raise ConfigurationError(f"{ERROR_UNKNOWN_ENDPOINT}: {endpoint!r}")

        defaults: dict[str, Any] = dict(target.defaults)
        for field_name, attr in target.config_defaults.items():
            value = getattr(self.config, attr, None)
            if value is not None:
                defaults[field_name] = value
        return self.config.url_for(target.path), defaults

    def prepare(self, params: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """
        Merge caller params over the default fields and attach the signature.

        Caller values win on collision. Returns a new dict; `params` is not
        modified.
        """
        merged: dict[str, Any] = {
            "appid": self.config.appid,
            "mch_id": self.config.mch_id,
            NONCE_FIELD: generate_nonce(),
            SIGN_TYPE_FIELD: SignType.MD5.value,
        }
        merged.update(defaults or {})
        merged.update(params)

        scheme = normalize_sign_type(merged.get(SIGN_TYPE_FIELD))
        if merged.get(SIGN_TYPE_FIELD):
            merged[SIGN_TYPE_FIELD] = scheme.value
        merged.pop(SIGN_FIELD, None)
        merged[SIGN_FIELD] = sign(merged, self.config.key, scheme)
        return merged

    async def execute(
        self,
        endpoint: "str | Endpoint",
        params: Optional[Mapping[str, Any]] = None,
        raw: bool = False,
    ) -> ResponseOutcome:
        """
        Run one signed call and classify the response.

        Args:
            endpoint: Name from ENDPOINTS, an Endpoint, or an absolute URL
            params: Caller fields, merged over the endpoint defaults
            raw: Return the body untouched (RawResponse) instead of decoding it

        Raises:
            ConfigurationError: Unknown endpoint, unsupported sign_type, or a
                field name that cannot be an XML element
        """
        url, defaults = self._resolve_endpoint(endpoint)
        signed = self.prepare(params or {}, defaults)
        body = build_xml(signed)

        logger.debug("Gateway request %s: %s", url, redact_params(signed))

        try:
            response = await self.transport.post(url, body, timeout=self.config.timeout_seconds)
        except TransportError as e:
            logger.warning("Gateway transport failure for %s: %s", url, e.message)
            return TransportFailure(error=e)
        except httpx.HTTPError as e:
            logger.warning("Gateway transport failure for %s: %s", url, type(e).__name__)
            return TransportFailure(error=TransportError(f"{ERROR_TRANSPORT}: {e!s}", raw_error=e))

        if raw:
            return RawResponse(body=response.body)

        outcome = classify_response(response.body, self.config.key, signed.get(SIGN_TYPE_FIELD))
        logger.info(
            "Gateway %s -> %s (out_trade_no=%s)",
            url,
            outcome.kind.value,
            sanitize_id_for_logging(signed.get("out_trade_no")),
        )
        return outcome

    async def request(self, endpoint: "str | Endpoint", params: Optional[Mapping[str, Any]] = None) -> dict[str, str]:
        """`execute()` and unwrap: verified params, or the matching WXPayError."""
        outcome = await self.execute(endpoint, params)
        return outcome.unwrap()

    # ==================== ENDPOINTS ====================

    async def unified_order(self, params: Mapping[str, Any]) -> dict[str, str]:
        """Create an order; the response carries prepay_id (and code_url for NATIVE)."""
        return await self.request("unified_order", params)

    async def query_order(self, params: Mapping[str, Any]) -> dict[str, str]:
        """Query an order by transaction_id or out_trade_no."""
        return await self.request("query_order", params)

    async def close_order(self, params: Mapping[str, Any]) -> dict[str, str]:
        return await self.request("close_order", params)

    async def query_refund(self, params: Mapping[str, Any]) -> dict[str, str]:
        return await self.request("query_refund", params)

    async def download_bill(self, params: Mapping[str, Any]) -> bytes:
        """
        Download a statement (bill_date=YYYYMMDD, bill_type defaults to ALL).

        A bill is plain text and unsigned, so the body comes back raw. The
        only failure signal is an XML error document in its place; detection
        is the leading-"<" heuristic of is_xml(), which is fragile but is all
        the gateway offers.

        Raises:
            BillDownloadError: The gateway answered with an XML error
            TransportError: No response
        """
        body = (await self.execute("download_bill", params, raw=True)).unwrap()

        if is_xml(body):
            try:
                error_params = parse_xml(body)
            except ProtocolDecodeError as e:
                raise BillDownloadError(raw_error=e) from e
            logger.warning(
                "Bill download failed: %s",
                sanitize_string_for_logging(error_params.get(RETURN_MSG_FIELD)),
            )
            raise BillDownloadError(error_params.get(RETURN_MSG_FIELD), raw_error=error_params)
        return body

    async def get_h5_pay_params(self, params: Mapping[str, Any]) -> dict[str, str]:
        """
        Create an order and build the parameters the in-app JS bridge needs.

        Returns appId, timeStamp, nonceStr, package ("prepay_id=..."),
        signType and paySign, signed with the same scheme as the order.
        """
        order = await self.unified_order(params)
        prepay_id = order.get(PREPAY_ID_FIELD)
        if not prepay_id:
            raise BusinessError(ERROR_MISSING_PREPAY_ID, code=CODE_MISSING_PREPAY_ID, raw_error=order)
        sign_type = normalize_sign_type(params.get(SIGN_TYPE_FIELD))

        pay_params = {
            "appId": self.config.appid,
            "timeStamp": generate_timestamp(),
            "nonceStr": generate_nonce(),
            "package": f"prepay_id={prepay_id}",
            "signType": sign_type.value,
        }
        pay_params["paySign"] = sign(pay_params, self.config.key, sign_type)
        return pay_params
