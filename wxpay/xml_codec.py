"""
XML codec for the gateway's flat record format.

    <xml>
      <appid><![CDATA[wx2421b1c4370ec43b]]></appid>
      <total_fee><![CDATA[100]]></total_fee>
    </xml>

One root, one level of children, text only. Anything deeper is outside the
supported schema.
"""

import re
from collections.abc import Mapping
from typing import Any

from lxml import etree

from .errors import ERROR_INVALID_FIELD_NAME, ConfigurationError, ProtocolDecodeError
from .signing import stringify_value

ROOT_TAG = "xml"

# Leading "<" after optional whitespace, closed somewhere later
_XML_SHAPE = re.compile(r"^\s*<[\s\S]*>")

_PARSER = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
    remove_comments=True,
    remove_pis=True,
    huge_tree=False,
)


def build_xml(params: Mapping[str, Any]) -> bytes:
    """
    Encode a flat parameter set as UTF-8 XML without a declaration.

    None values are omitted. Non-empty values are wrapped in CDATA; a value
    containing "]]>" cannot be, and is written as escaped text instead.

    Raises:
        ConfigurationError: If a field name is not a valid element name
    """
    root = etree.Element(ROOT_TAG)
    for name, value in params.items():
        if value is None:
            continue
        try:
            child = etree.SubElement(root, name)
        except ValueError as e:
            raise ConfigurationError(f"{ERROR_INVALID_FIELD_NAME}: {name!r}", raw_error=e) from e

        text = stringify_value(value)
        if not text:
            continue
        try:
            child.text = text if "]]>" in text else etree.CDATA(text)
        except ValueError as e:
            # Control characters are not representable in XML 1.0
            raise ConfigurationError(f"Invalid value for field {name!r}", raw_error=e) from e
    return etree.tostring(root, encoding="utf-8", xml_declaration=False)


def parse_xml(payload: "bytes | str") -> dict[str, str]:
    """
    Decode a flat XML record into a parameter set of trimmed strings.

    Raises:
        ProtocolDecodeError: Malformed XML, nested children, or repeated fields
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if not payload or not payload.strip():
        raise ProtocolDecodeError("Empty response body")

    try:
        root = etree.fromstring(payload, parser=_PARSER)
    except etree.XMLSyntaxError as e:
        raise ProtocolDecodeError(f"Malformed XML: {e}", raw_error=e) from e

    result: dict[str, str] = {}
    for child in root:
        if not isinstance(child.tag, str):
            continue
        if len(child):
            raise ProtocolDecodeError(f"Unsupported nested element <{child.tag}>")
        if child.tag in result:
            raise ProtocolDecodeError(f"Duplicate element <{child.tag}>")
        result[child.tag] = (child.text or "").strip()
    return result


def is_xml(payload: "bytes | str | None") -> bool:
    """
    Guess whether a body is an XML document rather than plain text.

    Heuristic: the gateway gives no structured way to tell a bill (CSV-like
    text) from an XML error payload, so this only looks at the leading "<".
    """
    if not payload:
        return False
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    return bool(_XML_SHAPE.match(payload))
