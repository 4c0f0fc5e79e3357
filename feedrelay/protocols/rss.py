"""RSS / Atom protocol handler."""

import asyncio
import logging
import xml.etree.ElementTree as ET
from typing import Any

from feedrelay.errors import MalformedPayload
from feedrelay.fetch.cors import CORSStrategyResolver
from feedrelay.fetch.validation import XML_CONTENT_TYPES, parse_xml
from feedrelay.logging import payload_snippet
from feedrelay.protocols.base import ProtocolHandler
from feedrelay.protocols.shapes import RSS_JSON_SHAPES, Record, map_shape, match_shape

logger = logging.getLogger(__name__)

CONTENT_ENCODED = "{http://purl.org/rss/1.0/modules/content/}encoded"
ITEM_TAGS = ("item", "entry")


def local_name(tag: Any) -> str:
    """Strip any ``{namespace}`` or ``prefix:`` from an element tag."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].rsplit(":", 1)[-1]


def _text(element: ET.Element | None) -> str:
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def _children(element: ET.Element, *names: str) -> list[ET.Element]:
    return [child for child in element if local_name(child.tag) in names]


def _child_text(element: ET.Element, *names: str) -> str:
    for name in names:
        for child in _children(element, name):
            text = _text(child)
            if text:
                return text
    return ""


def _link(element: ET.Element) -> str:
    for child in _children(element, "link"):
        href = child.get("href")
        if href and child.get("rel", "alternate") == "alternate":
            return href.strip()
        text = _text(child)
        if text:
            return text
    return ""


def _author(element: ET.Element) -> str:
    for child in _children(element, "author"):
        name = _child_text(child, "name")
        if name:
            return name
        text = _text(child)
        if text:
            return text
    return _child_text(element, "creator")


def _categories(element: ET.Element) -> list[str]:
    names = []
    for child in _children(element, "category"):
        name = child.get("term") or _text(child)
        if name:
            names.append(name.strip())
    return names


def _media(element: ET.Element) -> list[str]:
    refs = []
    for child in element.iter():
        if local_name(child.tag) in ("enclosure", "content", "thumbnail") and child.get("url"):
            refs.append(child.get("url").strip())
    return refs


def _content(element: ET.Element) -> str:
    encoded = _text(element.find(CONTENT_ENCODED))
    if encoded:
        return encoded
    return _child_text(element, "content", "description", "summary")


def parse_xml_items(root: ET.Element) -> list[Record]:
    """Extract item records from an RSS 2.0, RSS 1.0, or Atom document."""
    records = []
    for element in root.iter():
        if local_name(element.tag) not in ITEM_TAGS:
            continue
        records.append(
            {
                "id": _child_text(element, "guid", "id"),
                "title": _child_text(element, "title"),
                "link": _link(element),
                "description": _child_text(element, "description", "summary"),
                "pub_date": _child_text(element, "pubDate", "published", "updated", "date"),
                "content": _content(element),
                "author": _author(element),
                "categories": _categories(element),
                "media": _media(element),
            }
        )
    return records


class RssHandler(ProtocolHandler):
    """Handler for RSS and Atom feeds.

    Fetching goes through the CORS strategy resolver: an RSS-to-JSON relay
    first, then CORS proxies, then a direct request.
    """

    protocol = "rss"

    def __init__(self, resolver: CORSStrategyResolver):
        self.resolver = resolver

    def is_supported(self, endpoint: str) -> bool:
        lowered = endpoint.lower()
        return "rss" in lowered or lowered.endswith(".xml")

    async def fetch_data(
        self, endpoint: str, cancel: asyncio.Event | None = None
    ) -> Any:
        result = await self.resolver.fetch(
            endpoint, protocol=self.protocol, expected=XML_CONTENT_TYPES, cancel=cancel
        )
        logger.debug(
            f"Fetched {endpoint} via {result.strategy.value} "
            f"after {len(result.attempts)} attempt(s)"
        )
        return result.payload

    def parse_data(self, data: Any) -> list[Record]:
        shape = match_shape(data, RSS_JSON_SHAPES)
        if shape is not None:
            return map_shape(shape, data)

        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        if not isinstance(data, str):
            if data not in (None, [], {}):
                logger.error(f"Unrecognized RSS payload: {payload_snippet(data)}")
            return []
        if not data.strip():
            return []

        try:
            root = parse_xml(data)
        except MalformedPayload as e:
            logger.error(f"Error parsing XML data: {e} | payload: {e.snippet}")
            return []
        return parse_xml_items(root)
