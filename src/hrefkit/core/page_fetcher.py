import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import FetchConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedPage:
    url: str
    html: str
    status_code: int


class PageFetcher:
    """
    Handles HTTP requests for the documents whose links are inspected.
    """

    def __init__(self, config: Optional[FetchConfig] = None):
        self.config = config or FetchConfig()

    async def fetch(self, client: httpx.AsyncClient, url: str) -> Optional[FetchedPage]:
        """
        Fetch a document.

        The returned URL is the one the content was finally served from, so
        redirects change the document URL links are resolved against.

        :param client: HTTP client
        :param url: URL to fetch
        :return: Fetched page or None
        """
        try:
            response = await client.get(
                url,
                headers=self.config.generate_headers(),
                follow_redirects=self.config.follow_redirects,
                timeout=httpx.Timeout(
                    self.config.timeout, connect=self.config.connect_timeout
                ),
            )

            # Only reached when redirects are not followed
            if response.is_redirect:
                logger.error(f"Redirect encountered for {url}: {response.status_code}")
                return None

            response.raise_for_status()
        except httpx.RequestError as e:
            logger.error(f"Request failed for {url}: {e}")
            return None
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error for {url}: {e}")
            return None

        return FetchedPage(
            url=str(response.url), html=response.text, status_code=response.status_code
        )
