"""
Resolution of raw hyperlink references against a base URL.

A reference is whatever text sat in an ``href`` attribute. ``resolve`` turns it
into one of three outcomes: an absolute web URL, an opaque non-web link that is
passed through untouched apart from escaping, or a reference that could not be
interpreted at all.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union
from urllib.parse import SplitResult, quote, urlsplit

logger = logging.getLogger(__name__)

WEB_SCHEMES = ("http", "https")

SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*):")
PERCENT_TRIPLET_RE = re.compile(r"(%[0-9A-Fa-f]{2})")
EMBEDDED_WHITESPACE_RE = re.compile(r"[\t\r\n]")
LEADING_MARKUP_RE = re.compile(r'^[<>"\x00-\x1f\x7f]')
TAG_RE = re.compile(r"<[^>]*>?")
LEFTOVER_RE = re.compile(r"[<>\"'\s]")
HOST_RE = re.compile(r"^[A-Za-z0-9\-._~%!$&'()*+,;=]+$")
IPV6_RE = re.compile(r"^\[[0-9A-Fa-f:.]+\]$")
PORT_RE = re.compile(r"^[0-9]+$")

# Characters kept literally per component, on top of ALPHA / DIGIT / "-._~".
SUB_DELIMS = "!$&'()*+,;="
USERINFO_SAFE = SUB_DELIMS + ":"
PATH_SAFE = SUB_DELIMS + ":@/"
QUERY_SAFE = PATH_SAFE + "?"
OPAQUE_SAFE = SUB_DELIMS + ":/?#[]@"


class MalformedReference(ValueError):
    """Raised when a reference has no recognizable scheme, host or path."""


class InvalidBase(ValueError):
    """Raised when a declared base URL cannot serve as a resolution base."""


class InvalidDocumentUrl(ValueError):
    """Raised when the document URL is not an absolute http(s) URL."""


@dataclass(frozen=True)
class ResolvedUrl:
    """
    An absolute, ASCII-safe web URL.

    ``host`` keeps the casing it was written with, except that labels
    converted to punycode are lower-case; ``host_key`` is the form used for
    comparisons. Empty query and fragment are treated as absent.
    """

    scheme: str
    host: str
    path: str = ""
    query: str = ""
    fragment: str = ""
    port: Optional[str] = None
    userinfo: Optional[str] = None

    @property
    def host_key(self) -> str:
        return self.host.lower()

    @property
    def authority(self) -> str:
        authority = self.host
        if self.userinfo is not None:
            authority = f"{self.userinfo}@{authority}"
        if self.port:
            authority = f"{authority}:{self.port}"
        return authority

    def render(self) -> str:
        url = f"{self.scheme}://{self.authority}{self.path or '/'}"
        if self.query:
            url += "?" + self.query
        if self.fragment:
            url += "#" + self.fragment
        return url

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class BaseContext:
    """
    The URL relative references are merged against.

    ``document_scheme`` is the scheme of the document itself, which is what
    protocol-relative references inherit even when a ``<base>`` points
    elsewhere.
    """

    url: ResolvedUrl
    document_scheme: str

    @classmethod
    def from_url(
        cls, url: ResolvedUrl, document_scheme: Optional[str] = None
    ) -> "BaseContext":
        return cls(url=url, document_scheme=document_scheme or url.scheme)

    @property
    def is_directory(self) -> bool:
        return not self.url.path or self.url.path.endswith("/")

    def merge_path(self, reference_path: str) -> str:
        """
        Merge a relative path with the base path.

        A directory base keeps its whole path; a document base loses its last
        segment first.

        :param reference_path: Path of the relative reference
        :return: Merged absolute path (dot segments not yet removed)
        """
        if self.is_directory:
            directory = self.url.path or "/"
        else:
            directory = self.url.path[: self.url.path.rfind("/") + 1] or "/"
        return directory + reference_path


@dataclass(frozen=True)
class Absolute:
    url: ResolvedUrl


@dataclass(frozen=True)
class Opaque:
    text: str


@dataclass(frozen=True)
class Unresolvable:
    reference: str
    reason: str


ResolveOutcome = Union[Absolute, Opaque, Unresolvable]
Reference = Union[str, bytes]


def _as_text(reference: Reference) -> str:
    if isinstance(reference, bytes):
        return reference.decode("utf-8", "surrogateescape")
    return reference


def _to_bytes(text: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates: undecodable input bytes carried through surrogateescape
        # come back out unchanged, anything else is kept as its raw code units.
        try:
            return text.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError:
            return text.encode("utf-8", "surrogatepass")


def clean_reference(reference: Reference) -> str:
    """
    Trim surrounding whitespace and drop embedded tabs and line breaks.

    :param reference: Raw attribute value
    :return: Cleaned reference text
    """
    return EMBEDDED_WHITESPACE_RE.sub("", _as_text(reference).strip())


def percent_encode(text: str, safe: str) -> str:
    """
    Percent-encode everything outside ``safe`` and the unreserved set.

    Existing ``%XX`` triplets are left as they are, so encoding an already
    encoded string is a no-op. A ``%`` that does not start a triplet becomes
    ``%25``.

    :param text: Component text
    :param safe: Extra characters to keep literally
    :return: ASCII-only text
    """
    pieces = PERCENT_TRIPLET_RE.split(text)
    return "".join(
        piece if index % 2 else quote(_to_bytes(piece), safe=safe)
        for index, piece in enumerate(pieces)
    )


def opaque_encode(text: str) -> str:
    """Escape a whole non-web reference, keeping every reserved character."""
    return percent_encode(text, OPAQUE_SAFE)


def remove_dot_segments(path: str) -> str:
    """
    Collapse ``.`` and ``..`` segments of an absolute path.

    :param path: Absolute path, possibly with dot segments
    :return: Path without dot segments
    """
    segments = path.split("/")
    output = []
    for segment in segments:
        if segment == ".":
            continue
        if segment == "..":
            # Never pop the empty segment that stands for the leading slash.
            if len(output) > 1:
                output.pop()
            continue
        output.append(segment)
    if segments[-1] in (".", ".."):
        output.append("")
    return "/".join(output)


def salvage(reference: Reference) -> Optional[str]:
    """
    Whole-string opaque form of a reference that could not be resolved.

    Returns None when nothing is left once markup tags, quotes, angle brackets
    and whitespace are stripped away.

    :param reference: Raw attribute value
    :return: Encoded reference or None
    """
    text = clean_reference(reference)
    remainder = LEFTOVER_RE.sub("", TAG_RE.sub("", text))
    if not remainder:
        return None
    return opaque_encode(text)


def _split(text: str) -> SplitResult:
    try:
        return urlsplit(text)
    except ValueError as e:
        raise MalformedReference(str(e)) from e


def _encode_label(label: str) -> str:
    if label.isascii():
        return label
    try:
        return label.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise MalformedReference(f"invalid international host label {label!r}") from e


def _parse_host(host: str) -> str:
    if not host:
        raise MalformedReference("missing host")
    if host.startswith("["):
        if not IPV6_RE.match(host):
            raise MalformedReference(f"invalid IP literal {host!r}")
        return host
    if not host.isascii():
        host = ".".join(_encode_label(label) for label in host.split("."))
    if not HOST_RE.match(host):
        raise MalformedReference(f"invalid host {host!r}")
    return host


def _parse_authority(netloc: str) -> Tuple[Optional[str], str, Optional[str]]:
    userinfo, at, hostport = netloc.rpartition("@")
    if hostport.startswith("["):
        host, bracket, rest = hostport.partition("]")
        host += bracket
        if rest and not rest.startswith(":"):
            raise MalformedReference(f"invalid authority {netloc!r}")
        port = rest[1:]
    else:
        host, _, port = hostport.partition(":")

    if port and (not PORT_RE.match(port) or int(port) > 65535):
        raise MalformedReference(f"invalid port {port!r}")

    encoded_userinfo = percent_encode(userinfo, USERINFO_SAFE) if at else None
    return encoded_userinfo, _parse_host(host), port or None


def _parse_absolute(text: str) -> ResolvedUrl:
    """
    Parse an ``http://`` or ``https://`` URL.

    :param text: Cleaned reference with a web scheme
    :return: Normalized URL
    :raises MalformedReference: When no host can be determined
    """
    parts = _split(text)
    if not text[len(parts.scheme) + 1 :].startswith("//"):
        raise MalformedReference("missing host")
    userinfo, host, port = _parse_authority(parts.netloc)
    return ResolvedUrl(
        scheme=parts.scheme.lower(),
        userinfo=userinfo,
        host=host,
        port=port,
        path=percent_encode(remove_dot_segments(parts.path), PATH_SAFE),
        query=percent_encode(parts.query, QUERY_SAFE),
        fragment=percent_encode(parts.fragment, QUERY_SAFE),
    )


def _split_relative(text: str) -> Tuple[str, Optional[str], str]:
    # A reference without a scheme or "//" is path ? query # fragment.
    rest, _, fragment = text.partition("#")
    path, has_query, query = rest.partition("?")
    return path, (query if has_query else None), fragment


def _merge_relative(text: str, base: BaseContext) -> ResolvedUrl:
    path, query, fragment = _split_relative(text)

    if path.startswith("/"):
        query = query or ""
    elif path:
        path, query = base.merge_path(path), query or ""
    elif query is not None:
        path = base.url.path
    else:
        path, query = base.url.path, base.url.query

    return replace(
        base.url,
        path=percent_encode(remove_dot_segments(path), PATH_SAFE),
        query=percent_encode(query, QUERY_SAFE),
        fragment=percent_encode(fragment, QUERY_SAFE),
    )


def resolve(reference: Reference, base: BaseContext) -> ResolveOutcome:
    """
    Resolve a raw reference against a base.

    Never raises for malformed input.

    :param reference: Raw attribute value
    :param base: Effective base of the document
    :return: Absolute, Opaque or Unresolvable
    """
    text = clean_reference(reference)
    if not text:
        return Unresolvable(text, "empty reference")

    scheme_match = SCHEME_RE.match(text)
    if scheme_match and scheme_match.group(1).lower() not in WEB_SCHEMES:
        return Opaque(opaque_encode(text))

    if LEADING_MARKUP_RE.match(text):
        return Unresolvable(text, "leading markup or control character")

    try:
        if text.startswith("//"):
            return Absolute(_parse_absolute(f"{base.document_scheme}:{text}"))
        if scheme_match:
            return Absolute(_parse_absolute(text))
        return Absolute(_merge_relative(text, base))
    except MalformedReference as e:
        logger.debug(f"Could not resolve {text!r}: {e}")
        return Unresolvable(text, str(e))


def parse_document_url(url: str) -> ResolvedUrl:
    """
    Parse the URL a document was retrieved from.

    :param url: Absolute http(s) URL
    :return: Normalized URL
    :raises InvalidDocumentUrl: For anything but an absolute web URL
    """
    text = clean_reference(url)
    scheme_match = SCHEME_RE.match(text)
    if not scheme_match or scheme_match.group(1).lower() not in WEB_SCHEMES:
        raise InvalidDocumentUrl(f"Not an absolute http(s) URL: {url!r}")
    try:
        return _parse_absolute(text)
    except MalformedReference as e:
        raise InvalidDocumentUrl(f"Invalid document URL {url!r}: {e}") from e


def parse_base(declared_base: Reference, document_base: BaseContext) -> BaseContext:
    """
    Turn a declared ``<base href>`` into a resolution base.

    The declared value may itself be relative to the document URL.

    :param declared_base: Value of the base element
    :param document_base: Base derived from the document URL
    :return: Base context keeping the document's scheme
    :raises InvalidBase: When the declared value does not resolve to a web URL
    """
    outcome = resolve(declared_base, document_base)
    if not isinstance(outcome, Absolute):
        raise InvalidBase(f"Unusable base URL {declared_base!r}")
    return BaseContext.from_url(outcome.url, document_base.document_scheme)
