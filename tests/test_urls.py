"""Tests for legacy_migrator.urls module."""

from __future__ import annotations

from legacy_migrator.urls import (
    extract_pathname,
    image_local_path,
    is_allowed_domain,
    is_skippable_href,
    join_page_relative,
    normalize,
    page_local_path,
    resolve,
)

DOMAINS = ("glitter-tattoo.com", "www.glitter-tattoo.com")


class TestResolve:
    def test_absolute_url_unchanged(self):
        assert resolve("https://x.com/a.html", "https://y.com/") == "https://x.com/a.html"

    def test_protocol_relative(self):
        assert resolve("//x.com/a.html", "https://y.com/b/") == "https://x.com/a.html"

    def test_root_relative(self):
        assert resolve("/a/b.html", "https://x.com/c/d.html") == "https://x.com/a/b.html"

    def test_base_relative(self):
        assert resolve("b.html", "https://x.com/2015/a.html") == "https://x.com/2015/b.html"

    def test_empty(self):
        assert resolve("", "https://x.com/") == ""
        assert resolve("   ", "https://x.com/") == ""

    def test_unparsable(self):
        assert resolve("http://[::1", "https://x.com/") == ""


class TestNormalize:
    def test_trailing_slash_removed(self):
        assert normalize("https://x.com/a/b/") == normalize("https://x.com/a/b")

    def test_root_slash_preserved(self):
        assert normalize("https://x.com/") == "https://x.com/"
        assert normalize("https://x.com") == "https://x.com/"

    def test_query_and_fragment_removed(self):
        assert normalize("https://x.com/a.html?x=1#top") == "https://x.com/a.html"

    def test_host_lowercased(self):
        assert normalize("HTTPS://X.com/A.html") == "https://x.com/A.html"

    def test_plain_path(self):
        assert normalize("/about/?q=1") == "/about"
        assert normalize("/") == "/"

    def test_empty(self):
        assert normalize("") == ""


class TestIsAllowedDomain:
    def test_relative_paths_allowed(self):
        assert is_allowed_domain("/about.html", DOMAINS)
        assert is_allowed_domain("about.html", DOMAINS)

    def test_exact_and_subdomain(self):
        assert is_allowed_domain("https://glitter-tattoo.com/a", DOMAINS)
        assert is_allowed_domain("https://shop.glitter-tattoo.com/a", DOMAINS)
        assert is_allowed_domain("//www.glitter-tattoo.com/a", DOMAINS)

    def test_foreign_domain(self):
        assert not is_allowed_domain("https://facebook.com/glitter", DOMAINS)
        assert not is_allowed_domain("https://notglitter-tattoo.com/", DOMAINS)

    def test_non_http_scheme(self):
        assert not is_allowed_domain("mailto:info@glitter-tattoo.com", DOMAINS)

    def test_empty(self):
        assert not is_allowed_domain("", DOMAINS)


class TestIsSkippableHref:
    def test_skippable(self):
        for href in ("", None, "#", " # ", "mailto:a@b.c", "tel:123", "javascript:void(0)", "data:x"):
            assert is_skippable_href(href)

    def test_crawlable(self):
        assert not is_skippable_href("/about.html")
        assert not is_skippable_href("#section")
        assert not is_skippable_href("https://x.com/")


class TestPathHelpers:
    def test_extract_pathname(self):
        assert extract_pathname("https://x.com/a/b.png?v=2") == "/a/b.png"
        assert extract_pathname("//x.com/a.png") == "/a.png"
        assert extract_pathname("/a.png#x") == "/a.png"
        assert extract_pathname("a.png") is None
        assert extract_pathname("") is None

    def test_page_local_path(self):
        assert page_local_path("https://x.com/") == "pages/index.html"
        assert page_local_path("https://x.com/2015/about.html") == "pages/2015/about.html"
        assert page_local_path("https://x.com/event") == "pages/event/index.html"

    def test_image_local_path_decodes(self):
        assert image_local_path("https://x.com/images/my%20logo.png") == "images/images/my logo.png"
        assert image_local_path("https://x.com/") == "images/unknown"

    def test_local_paths_never_climb_out(self):
        assert image_local_path("https://cdn.example.org/%2e%2e/%2e%2e/evil.png") == "images/evil.png"
        assert image_local_path("https://cdn.example.org/a/../../b/./c.png") == "images/a/b/c.png"
        assert image_local_path("https://cdn.example.org/..%5C..%5Cevil.png") == "images/evil.png"
        assert page_local_path("https://x.com/%2e%2e/%2e%2e/evil.html") == "pages/evil.html"
        assert page_local_path("https://x.com/%2e%2e/") == "pages/index.html"

    def test_join_page_relative(self):
        assert join_page_relative("/2015/about.html", "images/a.png") == "/2015/images/a.png"
        assert join_page_relative("/2015/about.html", "../flag/th.png") == "/flag/th.png"
        assert join_page_relative("/about.html", "/images/a.png?v=1") == "/images/a.png"
        assert join_page_relative("/about.html", "https://x.com/images/a.png") == "/images/a.png"
