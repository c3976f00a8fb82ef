from typing import List, Optional, Tuple

from selectolax.parser import HTMLParser


class LinkExtractor:
    """
    Pulls raw link references out of HTML.
    """

    @staticmethod
    def _references(parser: HTMLParser) -> List[str]:
        references = []
        for node in parser.css("a[href]"):
            href = node.attributes.get("href")
            if href is not None:
                references.append(href)
        return references

    @staticmethod
    def _base(parser: HTMLParser) -> Optional[str]:
        node = parser.css_first("base[href]")
        if node is None:
            return None
        return node.attributes.get("href")

    @staticmethod
    def extract(html_content: str) -> Tuple[List[str], Optional[str]]:
        """
        Extract anchor references and the declared base in a single parse.

        :param html_content: HTML content to parse
        :return: Tuple of (raw href values in document order, base href or None)
        """
        parser = HTMLParser(html_content)
        return LinkExtractor._references(parser), LinkExtractor._base(parser)

    @staticmethod
    def extract_references(html_content: str) -> List[str]:
        """
        Extract the href of every anchor, in document order.

        Values are returned exactly as written; nothing is resolved or
        deduplicated.

        :param html_content: HTML content to parse
        :return: List of raw href values
        """
        return LinkExtractor._references(HTMLParser(html_content))

    @staticmethod
    def extract_base(html_content: str) -> Optional[str]:
        """
        Extract the href of the first base element.

        :param html_content: HTML content to parse
        :return: Declared base URL or None
        """
        return LinkExtractor._base(HTMLParser(html_content))
