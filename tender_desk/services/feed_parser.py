"""Feed format sniffing and entry extraction.

A body is treated as a JSON Feed when it decodes to an object with an
``items`` list; anything else goes through the XML path, which accepts RSS
``<item>`` and Atom ``<entry>`` elements. Unparseable input yields no entries,
never an exception.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime

from bs4 import BeautifulSoup
from dateutil import parser as dtparser
from lxml import etree

from ..config import MISSING_LINK, MISSING_SUMMARY, MISSING_TITLE, SUMMARY_MAX_CHARS, SUMMARY_SUFFIX

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
# The body is already decoded, so a declared charset no longer applies.
_XML_DECLARATION = re.compile(r"\A\ufeff?\s*<\?xml[^>]*\?>")


@dataclass
class RawEntry:
    """One feed entry before closing-date inference."""

    id: str
    title: str
    link: str
    summary: str  # as found in the feed, may contain markup
    published: datetime
    source: str


def strip_markup(text: str) -> str:
    """Drop tags and collapse runs of whitespace."""
    if "<" in text:
        text = BeautifulSoup(text, "lxml").get_text(" ")
    return _WHITESPACE.sub(" ", text).strip()


def truncate_summary(text: str) -> str:
    """First 200 characters plus ``...``, whatever the input length."""
    return text[:SUMMARY_MAX_CHARS] + SUMMARY_SUFFIX


def parse_published(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return dtparser.parse(value)
    except (ValueError, OverflowError):
        logger.warning("Unparseable publish date %r", value)
        return None


def _text(tag) -> str:
    return tag.get_text() if tag is not None else ""


def parse_json_feed(data: dict, feed_url: str) -> list[RawEntry]:
    source = data.get("title") or feed_url
    items = data.get("items")
    if not isinstance(items, list):
        return []

    entries: list[RawEntry] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = item.get("title") or MISSING_TITLE
        link = item.get("url") or MISSING_LINK
        summary = item.get("content_html") or item.get("summary") or MISSING_SUMMARY
        published = parse_published(item.get("date_published") or item.get("published"))
        if published is None:
            continue
        entries.append(RawEntry(
            id=str(item.get("id") or link or title),
            title=title,
            link=link,
            summary=summary,
            published=published,
            source=source,
        ))
    return entries


def parse_xml_feed(body: str, feed_url: str) -> list[RawEntry]:
    body = _XML_DECLARATION.sub("", body, count=1)
    try:
        etree.fromstring(body.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        logger.warning("Could not parse feed %s as JSON or XML: %s", feed_url, e)
        return []

    soup = BeautifulSoup(body, "xml")
    source = _text(soup.select_one("channel > title, feed > title")) or feed_url

    entries: list[RawEntry] = []
    for item in soup.select("item, entry"):
        title = _text(item.find("title")) or MISSING_TITLE
        link_tag = item.find("link")
        link = (link_tag.get("href") if link_tag is not None else None) or _text(link_tag) or MISSING_LINK
        summary = _text(item.find(["description", "summary"])) or MISSING_SUMMARY
        published = parse_published(_text(item.find(["pubDate", "published"])))
        if published is None:
            continue
        entries.append(RawEntry(
            id=_text(item.find(["guid", "id"])) or link or title,
            title=title,
            link=link,
            summary=summary,
            published=published,
            source=source,
        ))
    return entries


def parse_feed(body: str, feed_url: str) -> list[RawEntry]:
    """Extract entries from a JSON Feed, RSS or Atom document.

    Entries without a usable publish date are dropped.
    """
    try:
        data = json.loads(body)
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("items"):
        entries = parse_json_feed(data, feed_url)
    else:
        entries = parse_xml_feed(body, feed_url)

    logger.info("Parsed %d entries from %s", len(entries), feed_url)
    return entries
