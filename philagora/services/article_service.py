"""
Article Service Module

Fetches article pages to enrich candidates whose feed item carried no image.
The page is downloaded with requests and handed to newspaper for metadata
extraction.
"""

from typing import Optional

import requests
from newspaper import Article

from philagora.config import settings
from philagora.utils.helpers import is_valid_url
from philagora.utils.logger import get_logger

logger = get_logger(__name__)


class ArticleService:
    """Service for fetching article metadata."""

    def __init__(self, timeout: Optional[float] = None):
        """Initialize the article service."""
        self.timeout = timeout or settings.OG_IMAGE_TIMEOUT
        self.headers = dict(settings.REQUEST_HEADERS)

    def fetch_og_image(self, url: str) -> Optional[str]:
        """
        Find the Open Graph image of an article page.

        Best effort: network errors, bad status codes and unparsable pages
        all yield None.

        Args:
            url (str): The article URL.

        Returns:
            Optional[str]: Absolute image URL, or None.
        """
        if not is_valid_url(url):
            return None

        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout, allow_redirects=True)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Could not fetch {url} for og:image: {e}")
            return None

        try:
            article = Article(url)
            article.config.browser_user_agent = settings.USER_AGENT
            article.download(input_html=response.text)
            article.parse()
        except Exception as e:
            logger.warning(f"Could not parse {url} for og:image: {e}")
            return None

        image_url = (article.meta_img or "").strip()
        if not image_url:
            return None

        # Protocol-relative URLs
        if image_url.startswith("//"):
            image_url = "https:" + image_url

        return image_url
