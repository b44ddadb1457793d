"""Retrieval of the ICS calendar feed over HTTPS."""
import logging
import time

import requests

logger = logging.getLogger(__name__)


class IcsFeedFetcher:
    """Fetcher for a published iCalendar feed."""

    MAX_RETRIES = 3
    BASE_DELAY = 1  # seconds

    def __init__(self, timeout: int = 30):
        """
        Initialize the feed fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.timeout = timeout

    def fetch_text(self, url: str) -> str:
        """
        Fetch the feed text, retrying with exponential backoff.

        Any status other than 200 counts as a failure.

        Args:
            url: Feed URL

        Returns:
            Decoded feed text

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                logger.info(
                    f"Fetching calendar feed "
                    f"(attempt {attempt + 1}/{self.MAX_RETRIES})"
                )
                response = requests.get(url, timeout=self.timeout)
                if response.status_code != 200:
                    raise requests.HTTPError(
                        f"ICS fetch failed: {response.status_code}",
                        response=response
                    )
                # requests defaults text/* without charset to ISO-8859-1
                if 'charset' not in response.headers.get('Content-Type', ''):
                    response.encoding = 'utf-8'
                text = response.text
                logger.info(f"Fetched calendar feed ({len(text)} characters)")
                return text

            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/"
                        f"{self.MAX_RETRIES}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} retry attempts failed. "
                        f"Last error: {e}"
                    )
                    raise
