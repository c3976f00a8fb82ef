import logging
from typing import List, Optional, Sequence, Tuple

import httpx
import trio

from .config import ClassifierConfig, FetchConfig
from .link_classifier import LinkClassifier, LinkReport
from .link_extractor import LinkExtractor
from .page_fetcher import PageFetcher

logger = logging.getLogger(__name__)


class Document:
    """
    An HTML document together with the URL it was served from.
    """

    def __init__(
        self, url: str, html: str, config: Optional[ClassifierConfig] = None
    ):
        self.url = url
        self.html = html
        self.classifier = LinkClassifier(config)
        self._links: Optional[LinkReport] = None
        self._extracted: Optional[Tuple[List[str], Optional[str]]] = None

    def _extract(self) -> Tuple[List[str], Optional[str]]:
        if self._extracted is None:
            self._extracted = LinkExtractor.extract(self.html)
        return self._extracted

    @property
    def references(self) -> List[str]:
        return self._extract()[0]

    @property
    def declared_base(self) -> Optional[str]:
        return self._extract()[1]

    @property
    def links(self) -> LinkReport:
        if self._links is None:
            self._links = self.classifier.classify(
                self.references, self.url, self.declared_base
            )
        return self._links

    @property
    def base_url(self) -> str:
        """The URL relative links were resolved against."""
        return self.links.base_url

    @classmethod
    async def fetch(
        cls,
        url: str,
        fetch_config: Optional[FetchConfig] = None,
        classifier_config: Optional[ClassifierConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> Optional["Document"]:
        """
        Retrieve a document over HTTP.

        :param url: URL to fetch
        :param fetch_config: Request settings
        :param classifier_config: Link classification settings
        :param client: HTTP client to reuse; a new one is opened if omitted
        :return: The document, or None if it could not be fetched
        """
        fetcher = PageFetcher(fetch_config)
        logger.info(f"Fetching: {url}")
        if client is None:
            async with httpx.AsyncClient() as client:
                page = await fetcher.fetch(client, url)
        else:
            page = await fetcher.fetch(client, url)

        if page is None:
            return None
        return cls(page.url, page.html, classifier_config)


async def fetch_documents(
    urls: Sequence[str],
    fetch_config: Optional[FetchConfig] = None,
    classifier_config: Optional[ClassifierConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Optional[Document]]:
    """
    Fetch several documents concurrently.

    :param urls: URLs to fetch
    :param fetch_config: Request settings; ``concurrency`` bounds parallel requests
    :param classifier_config: Link classification settings
    :param client: HTTP client to reuse; a new one is opened if omitted
    :return: Documents in the order of ``urls``, None where a fetch failed
    """
    fetch_config = fetch_config or FetchConfig()
    limiter = trio.CapacityLimiter(fetch_config.concurrency)
    documents: List[Optional[Document]] = [None] * len(urls)

    async def fetch_worker(index: int, url: str, client: httpx.AsyncClient):
        async with limiter:
            documents[index] = await Document.fetch(
                url, fetch_config, classifier_config, client
            )

    async def fetch_all(client: httpx.AsyncClient):
        async with trio.open_nursery() as nursery:
            for index, url in enumerate(urls):
                nursery.start_soon(fetch_worker, index, url, client)

    if client is None:
        async with httpx.AsyncClient() as client:
            await fetch_all(client)
    else:
        await fetch_all(client)

    return documents
