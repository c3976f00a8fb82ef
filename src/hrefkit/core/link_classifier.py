import logging
from concurrent import futures
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from .config import ClassifierConfig, MalformedPolicy
from .url_resolver import (
    Absolute,
    BaseContext,
    InvalidBase,
    Opaque,
    Reference,
    ResolvedUrl,
    ResolveOutcome,
    Unresolvable,
    parse_base,
    parse_document_url,
    resolve,
    salvage,
)

logger = logging.getLogger(__name__)


class LinkCategory(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    NON_HTTP = "non_http"


@dataclass(frozen=True)
class ClassifiedLink:
    reference: Reference
    category: LinkCategory
    url: str


@dataclass
class LinkReport:
    """
    Outcome of one classification pass, in encounter order.
    """

    document_url: str
    base_url: str
    links: List[ClassifiedLink] = field(default_factory=list)
    dropped: List[Reference] = field(default_factory=list)
    raw: List[Reference] = field(default_factory=list)

    def _bucket(self, category: LinkCategory) -> List[str]:
        return [link.url for link in self.links if link.category is category]

    @property
    def internal(self) -> List[str]:
        return self._bucket(LinkCategory.INTERNAL)

    @property
    def external(self) -> List[str]:
        return self._bucket(LinkCategory.EXTERNAL)

    @property
    def non_http(self) -> List[str]:
        return self._bucket(LinkCategory.NON_HTTP)

    @property
    def http(self) -> List[str]:
        """Internal and external links, in the order they were found."""
        return [
            link.url
            for link in self.links
            if link.category is not LinkCategory.NON_HTTP
        ]

    @property
    def all(self) -> List[str]:
        return [link.url for link in self.links]

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            LinkCategory.INTERNAL.value: self.internal,
            LinkCategory.EXTERNAL.value: self.external,
            LinkCategory.NON_HTTP.value: self.non_http,
        }


class LinkClassifier:
    """
    Resolves a document's references and sorts them into internal, external
    and non-HTTP links.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig()

    @staticmethod
    def effective_base(
        document: ResolvedUrl, declared_base: Optional[Reference] = None
    ) -> BaseContext:
        """
        Pick the base relative references are resolved against.

        :param document: Parsed document URL
        :param declared_base: Value of the document's base element, if any
        :return: The declared base when usable, else the document URL
        """
        document_base = BaseContext.from_url(document)
        if declared_base is None:
            return document_base
        try:
            return parse_base(declared_base, document_base)
        except InvalidBase as e:
            logger.warning(f"{e}; falling back to {document.render()}")
            return document_base

    def _resolve_all(
        self, references: Sequence[Reference], base: BaseContext
    ) -> List[ResolveOutcome]:
        if self.config.max_workers == 1 or len(references) < 2:
            return [resolve(reference, base) for reference in references]
        with futures.ThreadPoolExecutor(max_workers=self.config.max_workers) as ex:
            # map yields results in submission order
            return list(ex.map(lambda reference: resolve(reference, base), references))

    def _classify_one(
        self, reference: Reference, outcome: ResolveOutcome, document: ResolvedUrl
    ) -> Optional[ClassifiedLink]:
        if isinstance(outcome, Absolute):
            if outcome.url.host_key == document.host_key:
                category = LinkCategory.INTERNAL
            else:
                category = LinkCategory.EXTERNAL
            return ClassifiedLink(reference, category, outcome.url.render())

        if isinstance(outcome, Opaque):
            return ClassifiedLink(reference, LinkCategory.NON_HTTP, outcome.text)

        if isinstance(outcome, Unresolvable):
            if self.config.malformed_policy is MalformedPolicy.OPAQUE:
                salvaged = salvage(reference)
                if salvaged is not None:
                    return ClassifiedLink(reference, LinkCategory.NON_HTTP, salvaged)
            logger.debug(f"Dropping reference {reference!r}: {outcome.reason}")
            return None

        raise TypeError(f"Unexpected resolve outcome: {outcome!r}")

    def classify(
        self,
        references: Iterable[Reference],
        document_url: str,
        declared_base: Optional[Reference] = None,
    ) -> LinkReport:
        """
        Resolve and classify every reference of a document.

        :param references: Raw href values in document order
        :param document_url: Absolute URL of the document
        :param declared_base: Value of the document's base element, if any
        :return: Report holding the classified links in encounter order
        :raises InvalidDocumentUrl: If document_url is not an absolute http(s) URL
        """
        references = list(references)
        document = parse_document_url(document_url)
        base = self.effective_base(document, declared_base)

        report = LinkReport(
            document_url=document.render(), base_url=base.url.render(), raw=references
        )
        for reference, outcome in zip(references, self._resolve_all(references, base)):
            link = self._classify_one(reference, outcome, document)
            if link is None:
                report.dropped.append(reference)
            else:
                report.links.append(link)
        return report


def classify(
    references: Iterable[Reference],
    document_url: str,
    declared_base: Optional[Reference] = None,
    config: Optional[ClassifierConfig] = None,
) -> Dict[str, List[str]]:
    """
    Classify references into a mapping with internal, external and non_http keys.

    :param references: Raw href values in document order
    :param document_url: Absolute URL of the document
    :param declared_base: Value of the document's base element, if any
    :param config: Classifier configuration
    :return: Mapping of bucket name to ordered URLs
    """
    return LinkClassifier(config).classify(references, document_url, declared_base).to_dict()
