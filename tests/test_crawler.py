"""Tests for legacy_migrator.crawler module."""

from __future__ import annotations

from unittest.mock import MagicMock

from bs4 import BeautifulSoup

from legacy_migrator.config import CrawlConfig
from legacy_migrator.crawler import crawl_site, extract_images, extract_links, extract_redirects
from legacy_migrator.fetcher import FetchError

BASE = "https://www.glitter-tattoo.com"
DOMAINS = ("glitter-tattoo.com", "www.glitter-tattoo.com")


class FakeFetcher:
    """Serves canned HTML per URL and records the request order."""

    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    def fetch_text(self, url):
        self.requested.append(url)
        body = self.pages.get(url)
        if body is None:
            raise FetchError(url, "HTTP 404: Not Found")
        return body


def _config(**kwargs):
    kwargs.setdefault("base_url", BASE + "/")
    kwargs.setdefault("delay_ms", 0)
    return CrawlConfig(**kwargs)


def _soup(html):
    return BeautifulSoup(html, "html.parser")


class TestExtractLinks:
    def test_anchor_area_and_frames(self):
        html = """
        <a href="/2015/about.html">About</a>
        <a href="products.html?x=1#top">Products</a>
        <area href="/gallery.html">
        <frame src="/menu.html"><iframe src="/map.html"></iframe>
        <a href="mailto:info@glitter-tattoo.com">Mail</a>
        <a href="#">Top</a>
        <a href="https://facebook.com/glitter">FB</a>
        """
        links = extract_links(_soup(html), html, BASE + "/2015/index.html", DOMAINS)
        assert links == [
            BASE + "/2015/about.html",
            BASE + "/2015/products.html",
            BASE + "/gallery.html",
            BASE + "/menu.html",
            BASE + "/map.html",
        ]

    def test_frames_can_be_ignored(self):
        html = '<frame src="/menu.html"><a href="/a.html">a</a>'
        links = extract_links(_soup(html), html, BASE + "/", DOMAINS, follow_frames=False)
        assert links == [BASE + "/a.html"]


class TestExtractRedirects:
    def test_meta_refresh(self):
        html = '<meta http-equiv="Refresh" content="0; url=/2015/index.html">'
        assert extract_redirects(_soup(html), html, BASE + "/", DOMAINS) == [
            BASE + "/2015/index.html"
        ]

    def test_script_location_assignments(self):
        html = """<script>
        window.location = "/home_en.html";
        window.location.href = '/home_ch.html';
        location.replace("/2015/");
        </script>"""
        redirects = extract_redirects(_soup(html), html, BASE + "/", DOMAINS)
        assert BASE + "/home_en.html" in redirects
        assert BASE + "/home_ch.html" in redirects
        assert BASE + "/2015" in redirects

    def test_prefixed_location_assignments(self):
        html = """<script>
        document.location.href='/home_th.html';
        top.location.href = "/x.html";
        self.location = '/y.html';
        document.location.href='/home_th.html';
        </script>"""
        assert extract_redirects(_soup(html), html, BASE + "/", DOMAINS) == [
            BASE + "/y.html",
            BASE + "/home_th.html",
            BASE + "/x.html",
        ]

    def test_foreign_redirect_ignored(self):
        html = '<script>window.location = "https://example.org/";</script>'
        assert extract_redirects(_soup(html), html, BASE + "/", DOMAINS) == []


class TestExtractImages:
    def test_all_image_sources(self):
        html = """
        <link rel="shortcut icon" href="/favicon.ico">
        <link rel="stylesheet" href="/style.css">
        <img src="images/logo.png" srcset="images/logo-2x.png 2x, images/logo-3x.png 3x">
        <picture><source srcset="/images/hero.webp 1x"></picture>
        <input type="image" src="/images/submit.gif">
        <div style="color: red; background-image: url('/images/bg.jpg')"></div>
        <img src="data:image/png;base64,AAAA">
        <img src="https://cdn.example.org/x.png">
        """
        images = extract_images(_soup(html), BASE + "/2015/about.html")
        assert set(images) == {
            BASE + "/favicon.ico",
            BASE + "/2015/images/logo.png",
            BASE + "/2015/images/logo-2x.png",
            BASE + "/2015/images/logo-3x.png",
            BASE + "/images/hero.webp",
            BASE + "/images/submit.gif",
            BASE + "/images/bg.jpg",
            "https://cdn.example.org/x.png",
        }


class TestCrawlSite:
    def test_bfs_order_and_no_revisits(self):
        fetcher = FakeFetcher(
            {
                BASE + "/": '<a href="/a.html">a</a><a href="/b.html">b</a>',
                BASE + "/a.html": '<a href="/">home</a><a href="/c.html">c</a><a href="/b.html/">b</a>',
                BASE + "/b.html": '<a href="/a.html">a</a><img src="/images/b.png">',
                BASE + "/c.html": "<p>leaf</p>",
            }
        )
        result = crawl_site(_config(), fetcher)
        assert fetcher.requested == [
            BASE + "/",
            BASE + "/a.html",
            BASE + "/b.html",
            BASE + "/c.html",
        ]
        assert [page.url for page in result.pages] == fetcher.requested
        assert result.image_urls == {BASE + "/images/b.png"}
        assert result.errors == []
        assert result.pages[0].local_path == "pages/index.html"

    def test_max_pages_bounds_visits(self):
        pages = {BASE + "/": "".join(f'<a href="/p{i}.html">p</a>' for i in range(10))}
        for i in range(10):
            pages[BASE + f"/p{i}.html"] = "<p>page</p>"
        fetcher = FakeFetcher(pages)
        result = crawl_site(_config(max_pages=4), fetcher)
        assert len(fetcher.requested) == 4
        assert len(set(fetcher.requested)) == 4
        assert len(result.pages) == 4

    def test_max_pages_larger_than_site(self):
        fetcher = FakeFetcher({BASE + "/": '<a href="/a.html">a</a>', BASE + "/a.html": ""})
        result = crawl_site(_config(max_pages=50), fetcher)
        assert len(fetcher.requested) == 2
        assert len(result.pages) == 2

    def test_failures_recorded_and_crawl_continues(self):
        fetcher = FakeFetcher(
            {
                BASE + "/": '<a href="/missing.html">x</a><a href="/ok.html">ok</a>',
                BASE + "/ok.html": "<p>fine</p>",
            }
        )
        result = crawl_site(_config(), fetcher)
        assert [page.url for page in result.pages] == [BASE + "/", BASE + "/ok.html"]
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.url == BASE + "/missing.html"
        assert "404" in error.error
        assert error.timestamp

    def test_failed_start_page_returns_partial_result(self):
        result = crawl_site(_config(), FakeFetcher({}))
        assert result.pages == []
        assert len(result.errors) == 1

    def test_throttle_applies_after_failures_too(self):
        fetcher = FakeFetcher(
            {BASE + "/": '<a href="/missing.html">x</a><a href="/ok.html">ok</a>', BASE + "/ok.html": ""}
        )
        sleep = MagicMock()
        crawl_site(_config(delay_ms=250), fetcher, sleep=sleep)
        # Delays before the 2nd and 3rd items; none once the queue is empty.
        assert [call.args[0] for call in sleep.call_args_list] == [0.25, 0.25]

    def test_no_throttle_when_nothing_left_to_fetch(self):
        fetcher = FakeFetcher(
            {
                BASE + "/": '<a href="/a.html">a</a><a href="/a.html/">again</a>',
                BASE + "/a.html": '<a href="/">home</a><a href="/a.html">self</a>',
            }
        )
        sleep = MagicMock()
        crawl_site(_config(delay_ms=100), fetcher, sleep=sleep)
        assert sleep.call_count == 1

    def test_no_throttle_once_budget_is_spent(self):
        pages = {BASE + "/": "".join(f'<a href="/p{i}.html">p</a>' for i in range(5))}
        fetcher = FakeFetcher(pages)
        sleep = MagicMock()
        crawl_site(_config(delay_ms=100, max_pages=2), fetcher, sleep=sleep)
        assert len(fetcher.requested) == 2
        assert sleep.call_count == 1

    def test_foreign_links_not_followed(self):
        fetcher = FakeFetcher({BASE + "/": '<a href="https://example.org/">out</a>'})
        crawl_site(_config(), fetcher)
        assert fetcher.requested == [BASE + "/"]
