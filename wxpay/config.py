"""Merchant credentials and client configuration."""
import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .constants import DEFAULT_API_BASE_URL
from .errors import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)


# Environment variables read by WXPayConfig.from_env (field -> suffix after the prefix)
ENV_FIELDS: dict[str, str] = {
    "appid": "APPID",
    "mch_id": "MCH_ID",
    "key": "KEY",
    "notify_url": "NOTIFY_URL",
    "refund_url": "REFUND_URL",
    "pfx": "PFX_PATH",
    "api_base_url": "API_BASE_URL",
    "timeout_seconds": "TIMEOUT",
    "spbill_create_ip": "SPBILL_CREATE_IP",
}

REQUIRED_FIELDS: tuple[str, ...] = ("appid", "mch_id", "key")


def configuration_error(error: ValidationError) -> ConfigurationError:
    """Turn a pydantic ValidationError into a ConfigurationError with the first message."""
    invalid = [".".join(str(p) for p in err["loc"]) for err in error.errors()]
    logger.error("wxpay not configured. Invalid: %s", invalid)
    first = error.errors()[0]
    message = str(first.get("msg", "invalid configuration")).removeprefix("Value error, ")
    if first.get("type") != "value_error" and first.get("loc"):
        message = f"{first['loc'][0]}: {message}"
    return ConfigurationError(message, raw_error=error)


class WXPayConfig(BaseModel):
    """
    Merchant credentials.

    appid, mch_id and key are required and must not be blank. pfx is the
    path to the merchant certificate for certificate-gated endpoints; it is
    only handed to the transport, never read by the protocol layer.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    appid: str
    mch_id: str
    key: str
    pfx: Optional[str] = None
    notify_url: Optional[str] = None
    refund_url: Optional[str] = None
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = 10.0
    spbill_create_ip: str = "127.0.0.1"

    def __init__(self, **data: Any) -> None:
        # Absent credentials go through require_value like blank ones
        data = {**dict.fromkeys(REQUIRED_FIELDS), **data}
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise configuration_error(e) from e

    @field_validator("appid", "mch_id", "key", mode="before")
    @classmethod
    def require_value(cls, v, info):
        if v is None or not str(v).strip():
            raise ValueError(f"{info.field_name} is not provided")
        return str(v).strip()

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v

    def url_for(self, path: str) -> str:
        """Absolute URL for an endpoint path."""
        return f"{self.api_base_url}{path}"

    @classmethod
    def from_env(cls, prefix: str = "WXPAY_") -> "WXPayConfig":
        """
        Build config from environment variables.

        Unset optional variables fall back to the field defaults.

        Raises:
            ConfigurationError: Missing credentials or a malformed value
        """
        values: dict[str, str] = {}
        for field_name, suffix in ENV_FIELDS.items():
            value = os.environ.get(f"{prefix}{suffix}")
            if value is not None:
                values[field_name] = value
        return cls(**values)


def missing_env_vars(prefix: str = "WXPAY_") -> list[str]:
    """Names of required environment variables that are unset or blank."""
    missing = []
    for field_name in REQUIRED_FIELDS:
        env_var = f"{prefix}{ENV_FIELDS[field_name]}"
        if not os.environ.get(env_var, "").strip():
            missing.append(env_var)
    return missing


def is_configured(prefix: str = "WXPAY_") -> bool:
    """Check that credentials are present in the environment without raising."""
    missing = missing_env_vars(prefix)
    if missing:
        logger.debug("wxpay not configured. Missing: %s", missing)
    return not missing
