"""Content-type and structural checks applied after a successful fetch.

These checks are never retried: a mismatch means the endpoint answered,
just not with something we can use.
"""

import json
import xml.etree.ElementTree as ET
from typing import Any

import httpx

from feedrelay.errors import MalformedPayload, UnsupportedContentType
from feedrelay.logging import payload_snippet

XML_CONTENT_TYPES = frozenset(
    {
        "application/rss+xml",
        "application/atom+xml",
        "application/xml",
        "application/rdf+xml",
        "text/xml",
        # Many feed hosts and raw proxies label feeds as plain text
        "text/plain",
        "application/octet-stream",
    }
)

JSON_CONTENT_TYPES = frozenset(
    {
        "application/json",
        "application/feed+json",
        "application/activity+json",
        "text/json",
        "application/javascript",
        "text/javascript",
        "text/plain",
        "application/octet-stream",
    }
)


def media_type(response: httpx.Response) -> str:
    """Return the bare media type of a response, lower-cased, or ''."""
    header = response.headers.get("content-type", "")
    return header.split(";", 1)[0].strip().lower()


def validate_content_type(
    response: httpx.Response, expected: frozenset[str], url: str = ""
) -> None:
    """Reject responses whose declared content-type is not in ``expected``.

    A missing header is accepted; only an explicit mismatch is rejected.

    Raises:
        UnsupportedContentType: If the declared media type is unexpected
    """
    declared = media_type(response)
    if declared and declared not in expected:
        raise UnsupportedContentType(
            f"Unexpected content-type {declared!r}", url, content_type=declared
        )


def parse_json(text: str, url: str = "") -> Any:
    """Decode a JSON body.

    Raises:
        MalformedPayload: If the body is not valid JSON
    """
    try:
        return json.loads(text)
    except ValueError as e:
        raise MalformedPayload(
            f"Invalid JSON: {e}", url, snippet=payload_snippet(text)
        ) from e


def parse_xml(text: str, url: str = "") -> ET.Element:
    """Parse an XML document and return its root element.

    Raises:
        MalformedPayload: If the document is not well-formed
    """
    try:
        return ET.fromstring(text.strip())
    except ET.ParseError as e:
        raise MalformedPayload(
            f"Invalid XML: {e}", url, snippet=payload_snippet(text)
        ) from e


def looks_like_xml(text: str) -> bool:
    """Cheap sniff for XML/RSS text before attempting a full parse."""
    head = text.lstrip()[:512].lower()
    return head.startswith("<") and any(
        marker in head for marker in ("<?xml", "<rss", "<feed", "<rdf", "<channel", "<item")
    )
