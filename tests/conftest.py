"""Pytest configuration and fixtures"""
import os
from typing import Any, Callable, Dict, List

import httpx
import pytest

from wxpay import WXPayClient, WXPayConfig, build_xml, sign
from wxpay.transport import HttpTransport

# Set test environment variables
os.environ.setdefault("LOG_LEVEL", "DEBUG")

TEST_APPID = "wx2421b1c4370ec43b"
TEST_MCH_ID = "10000100"
TEST_KEY = "192006250b4c09247ec02edce69f6a2d"


@pytest.fixture
def config() -> WXPayConfig:
    return WXPayConfig(
        appid=TEST_APPID,
        mch_id=TEST_MCH_ID,
        key=TEST_KEY,
        notify_url="https://shop.test/notify",
    )


def signed_xml(fields: Dict[str, Any], key: str = TEST_KEY, sign_type: str = "MD5") -> bytes:
    """Build a response body the way the gateway would, with a valid sign."""
    body = dict(fields)
    body["sign"] = sign(body, key, sign_type)
    return build_xml(body)


def success_fields(**extra: Any) -> Dict[str, Any]:
    fields = {
        "return_code": "SUCCESS",
        "return_msg": "OK",
        "appid": TEST_APPID,
        "mch_id": TEST_MCH_ID,
        "nonce_str": "IITRi8Iabbblz1Jc",
        "result_code": "SUCCESS",
    }
    fields.update(extra)
    return fields


class GatewayRecorder:
    """Collects requests sent through an httpx.MockTransport."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


@pytest.fixture
def make_client(config):
    """Build a WXPayClient whose transport answers with `responder`."""
    clients: List[WXPayClient] = []

    def _make(responder: Callable[[httpx.Request], httpx.Response]):
        recorder = GatewayRecorder(responder)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        client = WXPayClient(config, transport=HttpTransport(client=http_client))
        clients.append(client)
        return client, recorder, http_client

    return _make
