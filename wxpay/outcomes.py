"""
Response outcomes.

Every gateway call ends in exactly one of these. Callers branch on `kind`
(or isinstance), or call `unwrap()` to get the payload or the matching
exception.

    outcome = await client.execute("query_order", {"out_trade_no": "A1"})
    if outcome.kind is OutcomeKind.SUCCESS:
        ...
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from .errors import (
    CODE_DECODE,
    ERROR_TRANSPORT,
    BusinessError,
    ProtocolDecodeError,
    SignatureError,
    TransportError,
)


class OutcomeKind(str, Enum):
    TRANSPORT_FAILURE = "transport_failure"
    BUSINESS_FAILURE = "business_failure"
    SIGNATURE_INVALID = "signature_invalid"
    SUCCESS = "success"
    RAW = "raw"


@dataclass(frozen=True)
class TransportFailure:
    """No response body: network error, timeout, or server error."""
    error: BaseException
    kind: ClassVar[OutcomeKind] = OutcomeKind.TRANSPORT_FAILURE

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        if isinstance(self.error, TransportError):
            raise self.error
        raise TransportError(f"{ERROR_TRANSPORT}: {self.error}", raw_error=self.error) from self.error


@dataclass(frozen=True)
class BusinessFailure:
    """The gateway reported a failure, or answered with something that is not its XML."""
    code: str | None
    message: str | None
    params: dict[str, str] = field(default_factory=dict)
    error: BaseException | None = None
    kind: ClassVar[OutcomeKind] = OutcomeKind.BUSINESS_FAILURE

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        if self.code == CODE_DECODE:
            if isinstance(self.error, ProtocolDecodeError):
                raise self.error
            raise ProtocolDecodeError(self.message or "", raw_error=self.error)
        raise BusinessError(self.message, code=self.code, raw_error=self.params or None)


@dataclass(frozen=True)
class SignatureInvalid:
    """Response body decoded but its signature did not match."""
    expected: str | None
    received: str | None
    params: dict[str, str] = field(default_factory=dict)
    reason: str | None = None
    kind: ClassVar[OutcomeKind] = OutcomeKind.SIGNATURE_INVALID

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        if self.reason:
            raise SignatureError(self.reason, expected=self.expected, received=self.received)
        raise SignatureError(expected=self.expected, received=self.received)


@dataclass(frozen=True)
class Success:
    """Verified response parameters."""
    params: dict[str, str]
    kind: ClassVar[OutcomeKind] = OutcomeKind.SUCCESS

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> dict[str, str]:
        return self.params


@dataclass(frozen=True)
class RawResponse:
    """Unverified body returned as-is on request (bill downloads)."""
    body: bytes
    kind: ClassVar[OutcomeKind] = OutcomeKind.RAW

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> bytes:
        return self.body


ResponseOutcome = Union[TransportFailure, BusinessFailure, SignatureInvalid, Success, RawResponse]
