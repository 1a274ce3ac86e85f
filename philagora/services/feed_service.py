"""
Feed Service Module

Downloads RSS and Atom feeds and turns their items into FeedEntry objects.
The download goes through requests so every fetch has a timeout; feedparser
does the parsing.
"""

import re
import time
from typing import Any, List, Optional

import feedparser
import requests

from philagora.config import settings
from philagora.data.models import FeedEntry
from philagora.utils.exceptions import FeedFetchError
from philagora.utils.logger import get_logger

logger = get_logger(__name__)

_IMAGE_EXTENSION = re.compile(r'\.(jpg|jpeg|png|webp|gif)', re.IGNORECASE)
_IMG_SRC = re.compile(r'<img[^>]+src="([^"]+)"', re.IGNORECASE)


def extract_image_url(entry: Any) -> Optional[str]:
    """
    Find a thumbnail for a feed item.

    Looks, in order, at media:thumbnail, image media:content, image
    enclosures, then the first <img> in the item's HTML.
    """
    for thumbnail in entry.get("media_thumbnail") or []:
        if thumbnail.get("url"):
            return thumbnail["url"]

    for media in entry.get("media_content") or []:
        url = media.get("url")
        if not url:
            continue
        if (media.get("medium") == "image"
                or (media.get("type") or "").startswith("image/")
                or _IMAGE_EXTENSION.search(url)):
            return url

    for enclosure in entry.get("enclosures") or []:
        href = enclosure.get("href") or enclosure.get("url")
        if href and (enclosure.get("type") or "").startswith("image/"):
            return href

    html_parts = [c.get("value", "") for c in entry.get("content") or []]
    html_parts.append(entry.get("summary") or "")
    for html in html_parts:
        match = _IMG_SRC.search(html or "")
        if match:
            return match.group(1)

    return None


def _published_at(entry: Any) -> Optional[str]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed:
        return time.strftime("%Y-%m-%dT%H:%M:%SZ", parsed)
    return entry.get("published") or entry.get("updated") or None


class FeedService:
    """Service for fetching and parsing news feeds."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.FEED_FETCH_TIMEOUT

    def fetch(self, url: str) -> List[FeedEntry]:
        """
        Download and parse one feed.

        Args:
            url: Feed URL.

        Returns:
            List[FeedEntry]: Every item in the feed, in feed order. Items may
                lack a title or link; callers decide what to keep.

        Raises:
            FeedFetchError: If the download fails or the body is not a feed.
        """
        try:
            response = requests.get(url, headers=settings.REQUEST_HEADERS, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Error fetching feed {url}: {e}")
            raise FeedFetchError(f"Error fetching feed: {e}") from e

        feed = feedparser.parse(response.content)
        if feed.bozo and not feed.entries:
            reason = feed.get("bozo_exception", "no entries")
            logger.error(f"Could not parse feed {url}: {reason}")
            raise FeedFetchError(f"Could not parse feed: {reason}")

        entries = []
        for item in feed.entries:
            entries.append(FeedEntry(
                title=(item.get("title") or "").strip(),
                link=(item.get("link") or "").strip(),
                description=item.get("summary") or item.get("description") or "",
                published_at=_published_at(item),
                image_url=extract_image_url(item),
            ))

        logger.debug(f"Parsed {len(entries)} entries from {url}")
        return entries
