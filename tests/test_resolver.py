"""Tests for legacy_migrator.resolver module."""

from __future__ import annotations

import pytest

from legacy_migrator.models import (
    ImageManifestEntry,
    ImageVariant,
    LegacyPagesIndex,
    PageGroup,
    PageImage,
    ParsedPage,
)
from legacy_migrator.resolver import (
    ContentStore,
    lookup_entry,
    resolve_image,
    select_locale_content,
)
from legacy_migrator.responsive import build_entry, register_aliases, write_manifest
from legacy_migrator.utils import write_json


def _manifest(*relative_paths):
    manifest = {}
    for rel in relative_paths:
        register_aliases(manifest, rel, build_entry(rel, [320, 640], "/legacy/images"))
    return manifest


def _page(url_path, locale, group="about", body_html=""):
    return ParsedPage(
        url_path=url_path,
        file_path=url_path.lstrip("/"),
        locale=locale,
        group_name=group,
        title=f"{group} {locale}",
        body_text="some text",
        body_html=body_html,
    )


def _group(*pages, name="about"):
    return PageGroup(
        group_name=name,
        url_paths=[page.url_path for page in pages],
        locales={page.locale: page for page in pages},
        canonical_path=pages[0].url_path if pages else "",
    )


def _index(*groups):
    path_to_group = {path: group.group_name for group in groups for path in group.url_paths}
    return LegacyPagesIndex(
        path_to_group=path_to_group,
        groups=[group.group_name for group in groups],
        paths=sorted(path_to_group),
        total_pages=len(path_to_group),
    )


class TestResolveImage:
    def test_alias_keys_resolve_to_same_entry(self):
        manifest = _manifest("images/logo.png")
        entry = resolve_image(manifest, "/images/logo.png")
        assert entry is not None
        assert resolve_image(manifest, "/2015/images/logo.png") is entry

    def test_extension_fallback(self):
        manifest = _manifest("images/photo.jpg")
        entry = resolve_image(manifest, "/images/photo.png")
        assert entry is not None
        assert entry.original == "/images/photo.jpg"
        assert resolve_image(manifest, "/images/photo.png", extension_fallback=False) is None

    def test_gif_falls_back_to_png_then_jpg(self):
        manifest = _manifest("images/banner.jpg")
        assert lookup_entry(manifest, "/images/banner.gif").original == "/images/banner.jpg"
        assert lookup_entry(manifest, "/images/banner.webp") is None

    def test_percent_encoded_reference(self):
        manifest = {"/images/my photo.jpg": build_entry("images/my photo.jpg", [320], "/p")}
        entry = resolve_image(manifest, "/images/my%20photo.jpg")
        assert entry is not None
        assert entry.original == "/images/my photo.jpg"

    def test_images_directory_inserted(self):
        manifest = {"/images/logo.png": build_entry("images/logo.png", [320], "/p")}
        assert resolve_image(manifest, "/logo.png").original == "/images/logo.png"
        assert resolve_image(manifest, "/2015/logo.png").original == "/images/logo.png"

    def test_images_directory_not_inserted_for_asset_dirs(self):
        manifest = {"/images/flag/th.png": build_entry("images/flag/th.png", [320], "/p")}
        assert resolve_image(manifest, "/flag/th.png") is None

    def test_images_directory_removed(self):
        manifest = {"/event/a.jpg": build_entry("event/a.jpg", [320], "/p")}
        assert resolve_image(manifest, "/images/event/a.jpg").original == "/event/a.jpg"

    @pytest.mark.parametrize("src", ["", "/images/missing.png", "relative.png"])
    def test_misses(self, src):
        assert resolve_image(_manifest("images/logo.png"), src) is None


class TestSelectLocaleContent:
    def test_requested_locale(self):
        group = _group(_page("/about.html", "th"), _page("/about_en.html", "en"))
        assert select_locale_content(group, "en").url_path == "/about_en.html"

    def test_falls_back_to_thai(self):
        group = _group(_page("/about_en.html", "en"), _page("/about.html", "th"))
        assert select_locale_content(group, "zh").locale == "th"

    def test_falls_back_to_english(self):
        group = _group(_page("/about_ch.html", "zh"), _page("/about_en.html", "en"))
        assert select_locale_content(group, "ko").locale == "en"

    def test_falls_back_to_first_available(self):
        group = _group(_page("/about_ch.html", "zh"))
        assert select_locale_content(group, "en").locale == "zh"

    def test_no_locales(self):
        assert select_locale_content(_group(), "th") is None


class TestContentStore:
    def test_from_artifacts(self):
        about = _group(_page("/2015/about.html", "th"), _page("/about_en.html", "en"))
        store = ContentStore.from_artifacts(_index(about), [about], _manifest("images/logo.png"))

        assert store.is_legacy_path("/about_en.html")
        assert not store.is_legacy_path("/contact.html")
        assert store.get_all_legacy_paths() == ["/2015/about.html", "/about_en.html"]

        page = store.get_legacy_page_by_path("/2015/about.html", "zh")
        assert page.group is about
        assert page.content.locale == "th"
        assert store.get_legacy_page_by_path("/unknown.html", "th") is None
        assert store.get_responsive_image("/2015/images/logo.png") is not None

    def test_reads_files_once(self, tmp_path):
        about = _group(_page("/about.html", "th"), _page("/about_en.html", "en"))
        write_json(tmp_path / "pages.json", _index(about).to_dict())
        write_json(tmp_path / "groups" / "about.json", about.to_dict())
        write_manifest(tmp_path / "image-manifest.json", _manifest("images/logo.png"))

        store = ContentStore(content_dir=tmp_path)
        page = store.get_legacy_page_by_path("/about_en.html", "en")
        assert page.content.title == "about en"
        assert store.load_group("about") is page.group
        assert store.get_responsive_image("/images/logo.png").srcset.endswith("640w")

        (tmp_path / "pages.json").unlink()
        assert store.is_legacy_path("/about.html")

    def test_missing_artifacts_are_empty(self, tmp_path):
        store = ContentStore(content_dir=tmp_path / "nothing")
        assert store.get_all_legacy_paths() == []
        assert not store.is_legacy_path("/")
        assert store.get_legacy_page_by_path("/", "th") is None
        assert store.get_responsive_image("/images/logo.png") is None

    def test_missing_group_file(self, tmp_path):
        about = _group(_page("/about.html", "th"))
        write_json(tmp_path / "pages.json", _index(about).to_dict())
        store = ContentStore(content_dir=tmp_path)
        assert store.is_legacy_path("/about.html")
        assert store.get_legacy_page_by_path("/about.html", "th") is None

    def test_extension_fallback_can_be_disabled(self):
        store = ContentStore.from_artifacts(
            LegacyPagesIndex(), [], _manifest("images/photo.jpg"), extension_fallback=False
        )
        assert store.get_responsive_image("/images/photo.png") is None

    def test_gallery_images(self):
        store = ContentStore.from_artifacts(
            LegacyPagesIndex(),
            [],
            _manifest("images/work1.jpg", "images/logo.png", "flag/th.png"),
        )
        images = [
            PageImage("/images/work1.jpg", "Work"),
            PageImage("/images/logo.png", "Logo"),
            PageImage("/flag/th.png", "Thai"),
            PageImage("/images/spinner.gif", ""),
            PageImage("/images/missing.jpg", ""),
        ]
        assert store.gallery_images(images) == [PageImage("/images/work1.jpg", "Work")]

    def test_render_body_html(self):
        page = _page(
            "/about.html",
            "th",
            body_html='<p onclick="x()">Hi<img src="/2015/images/logo.png" alt="L"/>'
            '<img src="/images/gone.png"/></p>',
        )
        store = ContentStore.from_artifacts(LegacyPagesIndex(), [], _manifest("images/logo.png"))
        html = store.render_body_html(page)
        assert "onclick" not in html
        assert "<picture>" in html
        assert "/legacy/images/images/logo-640w.png" in html
        assert "gone.png" not in html
