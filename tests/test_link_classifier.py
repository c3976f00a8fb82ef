"""Tests for hrefkit.core.link_classifier."""

# pylint: disable=missing-function-docstring
import logging

from pydantic import ValidationError
from pytest import mark, raises

from hrefkit.core.config import ClassifierConfig, MalformedPolicy
from hrefkit.core.link_classifier import LinkCategory, LinkClassifier, classify
from hrefkit.core.url_resolver import InvalidDocumentUrl

MALFORMED_HREFS = [
    "<p>ftp://ftp.cdrom.com",
    "skype:joeuser?call",
    "",
    "<br>",
    "/faqs",
    "http://exa mple.com/",
    "telnet://telnet.cdrom.com",
]


def test_scenario_internal_and_non_http():
    links = classify(
        ["/", "/faqs", "javascript:alert('x')", "mailto:a@b.com"], "http://example.com"
    )

    assert links == {
        "internal": ["http://example.com/", "http://example.com/faqs"],
        "external": [],
        "non_http": ["javascript:alert('x')", "mailto:a@b.com"],
    }


def test_buckets_keep_encounter_order():
    references = [
        "mailto:hello@example.com",
        "/",
        "https://twitter.com/",
        "/faqs",
        "javascript:alert('hi');",
        "http://example.com/contact",
        "https://github.com/",
        "team.html",
        "ftp://ftp.example.com/",
    ]

    links = classify(references, "http://example.com")

    assert links == {
        "internal": [
            "http://example.com/",
            "http://example.com/faqs",
            "http://example.com/contact",
            "http://example.com/team.html",
        ],
        "external": ["https://twitter.com/", "https://github.com/"],
        "non_http": [
            "mailto:hello@example.com",
            "javascript:alert('hi');",
            "ftp://ftp.example.com/",
        ],
    }


@mark.parametrize(
    "document_url, expected",
    [
        ("http://relative.com/", ["http://relative.com/about", "http://relative.com/sitemap"]),
        ("http://relative.com/company", ["http://relative.com/about", "http://relative.com/sitemap"]),
        (
            "http://relative.com/company/",
            ["http://relative.com/company/about", "http://relative.com/sitemap"],
        ),
    ],
)
def test_relative_links(document_url, expected):
    assert classify(["about", "/sitemap"], document_url)["internal"] == expected


@mark.parametrize(
    "document_url",
    ["http://relativewithbase.com/company/page2", "http://relativewithbase.com/company/page2/"],
)
def test_declared_base_overrides_document_url(document_url):
    links = classify(["about", "sitemap"], document_url, "http://relativewithbase.com/")

    assert links["internal"] == [
        "http://relativewithbase.com/about",
        "http://relativewithbase.com/sitemap",
    ]


def test_relative_declared_base_resolves_against_document():
    report = LinkClassifier().classify(["guide"], "http://x.com/a/b", "/docs/")

    assert report.base_url == "http://x.com/docs/"
    assert report.internal == ["http://x.com/docs/guide"]


def test_unusable_declared_base_falls_back_to_document(caplog):
    with caplog.at_level(logging.WARNING):
        report = LinkClassifier().classify(
            ["about"], "http://x.com/company/", "javascript:void(0)"
        )

    assert report.base_url == "http://x.com/company/"
    assert report.internal == ["http://x.com/company/about"]
    assert "falling back" in caplog.text


def test_protocol_relative_follows_document_not_base():
    links = classify(
        ["//yahoo.com/", "//protocol-relative.com/contact", "img.png"],
        "https://protocol-relative.com/",
        "http://cdn.protocol-relative.com/",
    )

    assert links["internal"] == ["https://protocol-relative.com/contact"]
    assert links["external"] == [
        "https://yahoo.com/",
        "http://cdn.protocol-relative.com/img.png",
    ]


def test_host_comparison_ignores_case():
    links = classify(["http://EXAMPLE.com/x"], "http://example.com")

    assert links["internal"] == ["http://EXAMPLE.com/x"]
    assert links["external"] == []


def test_malformed_references_become_opaque_by_default():
    report = LinkClassifier().classify(MALFORMED_HREFS, "http://example.com/malformed_href")

    assert report.internal == ["http://example.com/faqs"]
    assert report.external == []
    assert report.non_http == [
        "%3Cp%3Eftp://ftp.cdrom.com",
        "skype:joeuser?call",
        "http://exa%20mple.com/",
        "telnet://telnet.cdrom.com",
    ]
    assert report.dropped == ["", "<br>"]


def test_quotes_and_angle_brackets_inside_http_links_are_encoded():
    report = LinkClassifier().classify(
        ['/search?q="foo"', "http://example.com/a<b>"], "http://example.com"
    )

    assert report.internal == [
        "http://example.com/search?q=%22foo%22",
        "http://example.com/a%3Cb%3E",
    ]
    assert report.non_http == []
    assert report.dropped == []


def test_malformed_references_dropped_with_drop_policy():
    classifier = LinkClassifier(ClassifierConfig(malformed_policy=MalformedPolicy.DROP))
    report = classifier.classify(MALFORMED_HREFS, "http://example.com/malformed_href")

    assert report.internal == ["http://example.com/faqs"]
    assert report.non_http == ["skype:joeuser?call", "telnet://telnet.cdrom.com"]
    assert report.dropped == [
        "<p>ftp://ftp.cdrom.com",
        "",
        "<br>",
        "http://exa mple.com/",
    ]


def test_report_views():
    references = ["/a", "mailto:x@y.com", "https://other.com/", "/a", "<br>"]
    report = LinkClassifier().classify(references, "http://example.com")

    assert report.raw == references
    assert report.http == ["http://example.com/a", "https://other.com/", "http://example.com/a"]
    assert report.all == [
        "http://example.com/a",
        "mailto:x@y.com",
        "https://other.com/",
        "http://example.com/a",
    ]
    assert [link.category for link in report.links] == [
        LinkCategory.INTERNAL,
        LinkCategory.NON_HTTP,
        LinkCategory.EXTERNAL,
        LinkCategory.INTERNAL,
    ]
    assert list(report.to_dict()) == ["internal", "external", "non_http"]


def test_every_reference_lands_in_one_place():
    references = MALFORMED_HREFS + ["/x", "https://a.com", "mailto:m@n.org"]
    report = LinkClassifier().classify(references, "http://example.com")

    assert len(report.links) + len(report.dropped) == len(references)


def test_parallel_resolution_preserves_order():
    references = [f"/page/{i}" if i % 3 else f"https://site{i}.org/" for i in range(50)]
    sequential = classify(references, "http://example.com")
    parallel = classify(references, "http://example.com", config=ClassifierConfig(max_workers=4))

    assert parallel == sequential


def test_invalid_document_url_raises():
    with raises(InvalidDocumentUrl):
        classify(["/"], "example.com/no-scheme")
    assert issubclass(InvalidDocumentUrl, ValueError)


def test_config_validation():
    assert ClassifierConfig(malformed_policy="drop").malformed_policy is MalformedPolicy.DROP
    with raises(ValidationError):
        ClassifierConfig(max_workers=0)
