import asyncio
from typing import Any, Dict

import httpx
import pytest  # type: ignore[reportMissingImports]

from conftest import TEST_APPID, TEST_KEY, TEST_MCH_ID, signed_xml, success_fields
from wxpay import (
    BillDownloadError,
    BusinessError,
    BusinessFailure,
    ConfigurationError,
    OutcomeKind,
    ProtocolDecodeError,
    RawResponse,
    SignatureError,
    SignatureInvalid,
    Success,
    TransportError,
    TransportFailure,
    WXPayClient,
    build_xml,
    classify_response,
    parse_xml,
    sign,
    verify_signature,
)
from wxpay.transport import TransportResponse


def _xml_response(body: bytes) -> httpx.Response:
    return httpx.Response(200, content=body, headers={"Content-Type": "text/xml"})


# ==================== classify_response ====================


def test_classify_success():
    body = signed_xml(success_fields(prepay_id="wx123"))

    outcome = classify_response(body, TEST_KEY, "MD5")

    assert isinstance(outcome, Success)
    assert outcome.kind is OutcomeKind.SUCCESS
    assert outcome.params["prepay_id"] == "wx123"


def test_classify_return_code_fail_ignores_sign():
    """Scenario B"""
    body = build_xml({"return_code": "FAIL", "return_msg": "params error", "sign": "WHATEVER"})

    outcome = classify_response(body, TEST_KEY)

    assert isinstance(outcome, BusinessFailure)
    assert outcome.code == "FAIL"
    assert outcome.message == "params error"
    with pytest.raises(BusinessError, match="params error"):
        outcome.unwrap()


def test_classify_result_code_fail_uses_err_code_des():
    body = signed_xml(success_fields(result_code="FAIL", err_code="ORDERPAID", err_code_des="order paid"))

    outcome = classify_response(body, TEST_KEY)

    assert isinstance(outcome, BusinessFailure)
    assert outcome.code == "ORDERPAID"
    assert outcome.message == "order paid"


def test_classify_bad_signature_is_never_success():
    """Scenario C"""
    fields = success_fields()
    fields["sign"] = "0" * 32
    body = build_xml(fields)

    outcome = classify_response(body, TEST_KEY)

    assert isinstance(outcome, SignatureInvalid)
    assert outcome.received == "0" * 32
    assert outcome.expected == sign(fields, TEST_KEY)
    with pytest.raises(SignatureError):
        outcome.unwrap()


def test_classify_tampered_field_is_signature_invalid():
    fields = success_fields(total_fee="100")
    fields["sign"] = sign(fields, TEST_KEY)
    fields["total_fee"] = "1"

    outcome = classify_response(build_xml(fields), TEST_KEY)

    assert isinstance(outcome, SignatureInvalid)


def test_classify_missing_sign_is_signature_invalid():
    outcome = classify_response(build_xml(success_fields()), TEST_KEY)

    assert isinstance(outcome, SignatureInvalid)


def test_classify_non_ascii_sign_is_signature_invalid():
    outcome = classify_response(build_xml(success_fields(sign="签名错误")), TEST_KEY)

    assert isinstance(outcome, SignatureInvalid)
    assert outcome.received == "签名错误"


def test_classify_uses_response_sign_type():
    body = signed_xml(success_fields(sign_type="HMAC-SHA256"), sign_type="HMAC-SHA256")

    assert isinstance(classify_response(body, TEST_KEY, "MD5"), Success)


def test_classify_falls_back_to_requested_sign_type():
    body = signed_xml(success_fields(), sign_type="HMAC-SHA256")

    assert isinstance(classify_response(body, TEST_KEY, "HMAC-SHA256"), Success)
    assert isinstance(classify_response(body, TEST_KEY, "MD5"), SignatureInvalid)


def test_classify_unknown_response_sign_type():
    body = build_xml(success_fields(sign_type="RSA", sign="abc"))

    outcome = classify_response(body, TEST_KEY)

    assert isinstance(outcome, SignatureInvalid)
    assert outcome.reason


def test_classify_undecodable_body():
    outcome = classify_response(b"<html><body><p>502</p></body></html>", TEST_KEY)

    assert isinstance(outcome, BusinessFailure)
    assert outcome.code == "DECODE_ERROR"
    with pytest.raises(ProtocolDecodeError):
        outcome.unwrap()


# ==================== configuration ====================


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"mch_id": "1", "key": "k"}, "appid is not provided"),
        ({"appid": "wx", "key": "k"}, "mch_id is not provided"),
        ({"appid": "wx", "mch_id": "1", "key": "  "}, "key is not provided"),
    ],
)
def test_client_requires_credentials(kwargs, message):
    with pytest.raises(ConfigurationError, match=message):
        WXPayClient(**kwargs)


def test_client_accepts_kwargs():
    client = WXPayClient(appid="wx", mch_id="1", key="k")

    assert client.config.appid == "wx"
    assert client.config.api_base_url == "https://api.mch.weixin.qq.com"


def test_client_rejects_missing_certificate(tmp_path):
    with pytest.raises(ConfigurationError, match="certificate"):
        WXPayClient(appid="wx", mch_id="1", key="k", pfx=str(tmp_path / "missing.pem"))


def test_client_rejects_unreadable_certificate(tmp_path):
    pem = tmp_path / "apiclient.pem"
    pem.write_text("not a certificate")

    with pytest.raises(ConfigurationError) as exc_info:
        WXPayClient(appid="wx", mch_id="1", key="k", pfx=str(pem))

    assert exc_info.value.retryable is False


# ==================== prepare ====================


def test_prepare_merges_defaults_and_signs(config):
    client = WXPayClient(config)
    caller = {"out_trade_no": "A1"}

    prepared = client.prepare(caller, {"bill_type": "ALL"})

    assert caller == {"out_trade_no": "A1"}
    assert prepared["appid"] == TEST_APPID
    assert prepared["mch_id"] == TEST_MCH_ID
    assert prepared["sign_type"] == "MD5"
    assert prepared["bill_type"] == "ALL"
    assert len(prepared["nonce_str"]) == 16
    assert verify_signature(prepared, TEST_KEY, "MD5")


def test_prepare_caller_values_win(config):
    client = WXPayClient(config)

    prepared = client.prepare(
        {"appid": "wx-other", "sign_type": "hmac-sha256", "nonce_str": "fixed", "bill_type": "REFUND"},
        {"bill_type": "ALL"},
    )

    assert prepared["appid"] == "wx-other"
    assert prepared["nonce_str"] == "fixed"
    assert prepared["bill_type"] == "REFUND"
    assert prepared["sign_type"] == "HMAC-SHA256"
    assert len(prepared["sign"]) == 64
    assert verify_signature(prepared, TEST_KEY, "HMAC-SHA256")


def test_prepare_replaces_caller_sign(config):
    client = WXPayClient(config)

    prepared = client.prepare({"out_trade_no": "A1", "sign": "stale"})

    assert prepared["sign"] != "stale"
    assert verify_signature(prepared, TEST_KEY)


def test_prepare_rejects_unknown_sign_type(config):
    client = WXPayClient(config)

    with pytest.raises(ConfigurationError):
        client.prepare({"sign_type": "SHA1"})


# ==================== execute ====================


@pytest.mark.asyncio
async def test_unified_order_sends_signed_xml(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields(prepay_id="wx201410272009", trade_type="JSAPI")))

    client, recorder, http_client = make_client(responder)

    result = await client.unified_order(
        {"body": "test", "out_trade_no": "A1", "total_fee": 1, "trade_type": "JSAPI", "openid": "o1"}
    )

    assert result["prepay_id"] == "wx201410272009"

    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.mch.weixin.qq.com/pay/unifiedorder"
    assert request.headers["Content-Type"].startswith("text/xml")

    sent = parse_xml(request.content)
    assert sent["notify_url"] == "https://shop.test/notify"
    assert sent["spbill_create_ip"] == "127.0.0.1"
    assert sent["total_fee"] == "1"
    assert verify_signature(sent, TEST_KEY, sent["sign_type"])

    await http_client.aclose()


@pytest.mark.asyncio
async def test_endpoint_urls(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields()))

    client, recorder, http_client = make_client(responder)

    await client.query_order({"out_trade_no": "A1"})
    await client.close_order({"out_trade_no": "A1"})
    await client.query_refund({"out_trade_no": "A1"})

    assert [request.url.path for request in recorder.requests] == [
        "/pay/orderquery",
        "/pay/closeorder",
        "/pay/refundquery",
    ]

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_verifies_with_request_sign_type(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields(), sign_type="HMAC-SHA256"))

    client, _, http_client = make_client(responder)

    outcome = await client.execute("query_order", {"out_trade_no": "A1", "sign_type": "HMAC-SHA256"})

    assert isinstance(outcome, Success)

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_signature_invalid(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields(), key="someone-else"))

    client, _, http_client = make_client(responder)

    outcome = await client.execute("query_order", {"out_trade_no": "A1"})
    assert isinstance(outcome, SignatureInvalid)

    with pytest.raises(SignatureError):
        await client.query_order({"out_trade_no": "A1"})

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_business_failure(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(build_xml({"return_code": "FAIL", "return_msg": "params error"}))

    client, _, http_client = make_client(responder)

    with pytest.raises(BusinessError) as exc_info:
        await client.close_order({"out_trade_no": "A1"})

    assert exc_info.value.message == "params error"
    assert not isinstance(exc_info.value, SignatureError)

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_transport_failure_keeps_error(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _, http_client = make_client(responder)

    outcome = await client.execute("query_order", {"out_trade_no": "A1"})

    assert isinstance(outcome, TransportFailure)
    assert isinstance(outcome.error, TransportError)
    assert isinstance(outcome.error.raw_error, httpx.ConnectError)
    assert outcome.error.retryable is True

    with pytest.raises(TransportError):
        outcome.unwrap()

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_keeps_connect_timeout(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields()))

    client, recorder, http_client = make_client(responder)

    await client.execute("query_order", {"out_trade_no": "A1"})

    assert recorder.requests[0].extensions["timeout"] == {
        "connect": 5.0,
        "read": 10.0,
        "write": 10.0,
        "pool": 10.0,
    }

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_server_error_is_transport_failure(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, content=b"Service Unavailable")

    client, _, http_client = make_client(responder)

    outcome = await client.execute("query_order", {"out_trade_no": "A1"})

    assert isinstance(outcome, TransportFailure)

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_raw_returns_plain_text_untouched(make_client):
    """Scenario D"""
    bill = "交易时间,公众账号ID,商户号\n`2026-01-01 10:00:00,`wx1,`10000100\n".encode("utf-8")

    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=bill)

    client, _, http_client = make_client(responder)

    outcome = await client.execute("download_bill", {"bill_date": "20260101"}, raw=True)

    assert isinstance(outcome, RawResponse)
    assert outcome.body == bill

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_accepts_absolute_url(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields()))

    client, recorder, http_client = make_client(responder)

    await client.request("https://api2.mch.weixin.qq.com/pay/orderquery", {"out_trade_no": "A1"})

    assert recorder.requests[0].url.host == "api2.mch.weixin.qq.com"

    await http_client.aclose()


@pytest.mark.asyncio
async def test_execute_unknown_endpoint(config):
    client = WXPayClient(config)

    with pytest.raises(ConfigurationError):
        await client.execute("refund", {})


@pytest.mark.asyncio
async def test_concurrent_calls_are_independent(config):
    class _EchoTransport:
        """Answers each call with its own out_trade_no after a reversed delay."""

        async def post(self, url, body, headers=None, timeout=None):
            sent = parse_xml(body)
            await asyncio.sleep(0.01 * (5 - int(sent["out_trade_no"])))
            return TransportResponse(200, signed_xml(success_fields(out_trade_no=sent["out_trade_no"])))

        async def aclose(self):
            return None

    client = WXPayClient(config, transport=_EchoTransport())

    results = await asyncio.gather(*(client.query_order({"out_trade_no": str(i)}) for i in range(5)))

    assert [r["out_trade_no"] for r in results] == ["0", "1", "2", "3", "4"]


# ==================== download_bill ====================


@pytest.mark.asyncio
async def test_download_bill_returns_body(make_client):
    bill = b"trade_time,appid\n`2026-01-01,`wx1\n"

    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=bill)

    client, recorder, http_client = make_client(responder)

    result = await client.download_bill({"bill_date": "20260101"})

    assert result == bill
    sent = parse_xml(recorder.requests[0].content)
    assert sent["bill_type"] == "ALL"
    assert sent["bill_date"] == "20260101"

    await http_client.aclose()


@pytest.mark.asyncio
async def test_download_bill_xml_error(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(build_xml({"return_code": "FAIL", "return_msg": "No Bill Exist"}))

    client, _, http_client = make_client(responder)

    with pytest.raises(BillDownloadError, match="No Bill Exist"):
        await client.download_bill({"bill_date": "20260101"})

    await http_client.aclose()


@pytest.mark.asyncio
async def test_download_bill_xml_error_without_message(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(build_xml({"return_code": "FAIL"}))

    client, _, http_client = make_client(responder)

    with pytest.raises(BillDownloadError, match="Bill download failed"):
        await client.download_bill({"bill_date": "20260101"})

    await http_client.aclose()


# ==================== get_h5_pay_params ====================


@pytest.mark.asyncio
async def test_get_h5_pay_params(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields(prepay_id="wx2017033010242291fcfe0db70013231072")))

    client, _, http_client = make_client(responder)

    pay: Dict[str, Any] = await client.get_h5_pay_params(
        {"body": "test", "out_trade_no": "A1", "total_fee": 1, "trade_type": "JSAPI", "openid": "o1"}
    )

    assert pay["appId"] == TEST_APPID
    assert pay["package"] == "prepay_id=wx2017033010242291fcfe0db70013231072"
    assert pay["signType"] == "MD5"
    assert pay["timeStamp"].isdigit()
    assert len(pay["nonceStr"]) == 16

    unsigned = {k: v for k, v in pay.items() if k != "paySign"}
    assert pay["paySign"] == sign(unsigned, TEST_KEY, "MD5")

    await http_client.aclose()


@pytest.mark.asyncio
async def test_get_h5_pay_params_hmac(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields(prepay_id="wx1"), sign_type="HMAC-SHA256"))

    client, _, http_client = make_client(responder)

    pay = await client.get_h5_pay_params({"out_trade_no": "A1", "sign_type": "HMAC-SHA256"})

    assert pay["signType"] == "HMAC-SHA256"
    assert len(pay["paySign"]) == 64

    await http_client.aclose()


@pytest.mark.asyncio
async def test_get_h5_pay_params_requires_prepay_id(make_client):
    def responder(request: httpx.Request) -> httpx.Response:
        return _xml_response(signed_xml(success_fields(trade_type="JSAPI")))

    client, _, http_client = make_client(responder)

    with pytest.raises(BusinessError) as exc_info:
        await client.get_h5_pay_params({"out_trade_no": "A1", "trade_type": "JSAPI", "openid": "o1"})

    assert exc_info.value.code == "PREPAY_ID_MISSING"

    await http_client.aclose()
