from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field


class MalformedPolicy(str, Enum):
    """
    What to do with a reference the resolver could not make sense of.
    """

    OPAQUE = "opaque"
    DROP = "drop"


class ClassifierConfig(BaseModel):
    """
    Configuration container for link classification.
    """

    malformed_policy: MalformedPolicy = MalformedPolicy.OPAQUE
    max_workers: int = Field(default=1, ge=1)


class FetchConfig(BaseModel):
    """
    Configuration container for document retrieval.
    """

    timeout: float = 10.0
    connect_timeout: float = 5.0
    follow_redirects: bool = True
    concurrency: int = Field(default=5, ge=1)
    user_agent: str = "hrefkit/0.1 (+https://github.com/hrefkit/hrefkit)"
    headers: Dict[str, str] = Field(
        default_factory=lambda: {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }
    )

    def generate_headers(self) -> Dict[str, str]:
        """
        Build the request headers for a fetch.

        :return: Dictionary of headers
        """
        headers = self.headers.copy()
        headers["User-Agent"] = self.user_agent
        return headers
