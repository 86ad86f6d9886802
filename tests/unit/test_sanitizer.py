"""Unit tests for sitemirror.sanitizer."""

from __future__ import annotations

from bs4 import BeautifulSoup

from sitemirror.sanitizer import extract_title, normalize, redact, sanitize

BASE = "https://ex.com"


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


# ---------------------------------------------------------------------------
# normalize
# ---------------------------------------------------------------------------


class TestNormalize:
    def test_media_src_becomes_relative_data_src(self) -> None:
        result = _soup(normalize(f'<img src="{BASE}/p/x.png?w=2" alt="Cat">', BASE))
        img = result.find("img")
        assert img["data-src"] == "/p/x.png?w=2"
        assert not img.has_attr("src")

    def test_relative_media_src_resolved(self) -> None:
        result = _soup(normalize('<video src="media/clip.mp4"></video>', BASE + "/posts/"))
        assert result.find("video")["data-src"] == "/posts/media/clip.mp4"

    def test_srcset_removed(self) -> None:
        html = f'<img src="{BASE}/a.png" srcset="{BASE}/a-2x.png 2x">'
        img = _soup(normalize(html, BASE)).find("img")
        assert not img.has_attr("srcset")

    def test_poster_moved_to_data_poster(self) -> None:
        html = f'<video poster="{BASE}/thumb.jpg"></video>'
        video = _soup(normalize(html, BASE)).find("video")
        assert video["data-poster"] == "/thumb.jpg"
        assert not video.has_attr("poster")

    def test_same_origin_link_made_relative(self) -> None:
        html = f'<a href="{BASE}/posts/hello/?ref=1#top">Hello</a>'
        assert _soup(normalize(html, BASE)).find("a")["href"] == "/posts/hello/?ref=1#top"

    def test_foreign_link_left_absolute(self) -> None:
        html = '<a href="https://other.org/page">Other</a>'
        assert _soup(normalize(html, BASE)).find("a")["href"] == "https://other.org/page"

    def test_special_links_untouched(self) -> None:
        html = '<a href="#section">s</a><a href="mailto:me@ex.com">m</a>'
        anchors = _soup(normalize(html, BASE)).find_all("a")
        assert [a["href"] for a in anchors] == ["#section", "mailto:me@ex.com"]

    def test_background_image_moved_to_data_background(self) -> None:
        html = f"<div style=\"color: red; background-image: url('{BASE}/bg.jpg');\">x</div>"
        div = _soup(normalize(html, BASE)).find("div")
        assert div["data-background"] == "/bg.jpg"
        assert "background-image" not in div["style"]
        assert "color: red" in div["style"]

    def test_background_only_style_removed(self) -> None:
        html = f'<div style="background-image:url({BASE}/bg.jpg)">x</div>'
        div = _soup(normalize(html, BASE)).find("div")
        assert not div.has_attr("style")

    def test_malformed_url_leaves_element_unchanged(self) -> None:
        html = '<img src="http://[broken/x.png">'
        img = _soup(normalize(html, BASE)).find("img")
        assert img["src"] == "http://[broken/x.png"
        assert not img.has_attr("data-src")

    def test_same_origin_form_action_and_link_made_relative(self) -> None:
        html = (
            f'<form action="{BASE}/search"><input name="q"></form>'
            f'<link rel="stylesheet" href="{BASE}/style.css">'
        )
        soup = _soup(normalize(html, BASE))
        assert soup.find("form")["action"] == "/search"
        assert soup.find("link")["href"] == "/style.css"

    def test_background_shorthand_moved_to_data_background(self) -> None:
        html = f'<div style="background: #fff url({BASE}/bg.png) no-repeat; color: red">x</div>'
        div = _soup(normalize(html, BASE)).find("div")
        assert div["data-background"] == "/bg.png"
        assert div["style"] == "color: red"

    def test_background_color_untouched(self) -> None:
        div = _soup(normalize('<div style="background-color: red">x</div>', BASE)).find("div")
        assert div["style"] == "background-color: red"
        assert not div.has_attr("data-background")


# ---------------------------------------------------------------------------
# redact
# ---------------------------------------------------------------------------


class TestRedact:
    def test_image_uses_alt_text(self) -> None:
        assert "[Cat]" in redact('<img data-src="/x.png" alt="Cat">')

    def test_image_without_alt(self) -> None:
        assert "[Image]" in redact('<img data-src="/x.png">')

    def test_picture_collapses_to_single_placeholder(self) -> None:
        html = '<picture><source data-src="/a.webp"><img data-src="/a.png" alt="Dog"></picture>'
        result = redact(html)
        assert result.count("media-placeholder") == 1
        assert "[Dog]" in result

    def test_video_audio_svg_placeholders(self) -> None:
        html = "<video></video><audio></audio><svg><circle r='1'/></svg>"
        result = redact(html)
        assert "[Video]" in result
        assert "[Audio]" in result
        assert "[Graphic]" in result
        soup = _soup(result)
        assert soup.find(["video", "audio", "svg", "circle"]) is None

    def test_scripts_and_embeds_removed(self) -> None:
        html = "<p>a</p><script>alert(1)</script><iframe src='x'></iframe><noscript>n</noscript>"
        soup = _soup(redact(html))
        assert soup.find(["script", "iframe", "noscript"]) is None
        assert soup.get_text() == "a"

    def test_document_link_becomes_named_placeholder(self) -> None:
        html = '<a href="/files/Annual%20Report.pdf">Report</a>'
        result = redact(html)
        assert "[Document: Annual Report.pdf]" in result
        assert _soup(result).find("a") is None

    def test_document_extension_case_insensitive(self) -> None:
        assert "[Document: sheet.XLSX]" in redact('<a href="/sheet.XLSX">s</a>')

    def test_other_links_lose_href(self) -> None:
        anchor = _soup(redact('<a href="/posts/hello/">Hello</a>')).find("a")
        assert anchor is not None
        assert not anchor.has_attr("href")
        assert anchor.get_text() == "Hello"

    def test_malformed_link_loses_href(self) -> None:
        anchor = _soup(redact('<a href="http://[broken/x">bad</a>')).find("a")
        assert anchor is not None
        assert not anchor.has_attr("href")

    def test_form_action_and_stylesheet_removed(self) -> None:
        soup = _soup(redact('<form action="/search"><input name="q"></form><link href="/s.css">'))
        assert not soup.find("form").has_attr("action")
        assert soup.find("link") is None


# ---------------------------------------------------------------------------
# sanitize
# ---------------------------------------------------------------------------


class TestSanitize:
    def test_absolute_image_becomes_alt_placeholder(self) -> None:
        result = sanitize('<img src="https://ex.com/p/x.png" alt="Cat">', BASE)
        assert _soup(result).get_text() == "[Cat]"

    def test_returns_body_fragment(self) -> None:
        html = "<html><head><title>T</title></head><body><p>Hi</p></body></html>"
        assert sanitize(html, BASE) == "<p>Hi</p>"

    def test_no_media_elements_remain(self) -> None:
        html = (
            f'<img src="{BASE}/a.png"><video src="{BASE}/v.mp4"></video>'
            f'<audio src="{BASE}/a.mp3"></audio><svg></svg><p>text</p>'
        )
        soup = _soup(sanitize(html, BASE))
        assert soup.find(["img", "video", "audio", "svg"]) is None

    def test_no_absolute_base_references(self) -> None:
        html = (
            f'<p><a href="{BASE}/a/">a</a><img src="{BASE}/i.png">'
            f'<span style="background-image:url({BASE}/bg.png)">b</span></p>'
            f'<form action="{BASE}/search"><input name="q"></form>'
            f'<link rel="stylesheet" href="{BASE}/style.css">'
            f'<div style="background: url({BASE}/bg.png) center">c</div>'
        )
        assert BASE not in sanitize(html, BASE)

    def test_malformed_link_does_not_abort(self) -> None:
        result = sanitize('<p>keep</p><a href="http://[broken/x">bad</a>', BASE)
        soup = _soup(result)
        assert soup.find("p").get_text() == "keep"
        assert soup.find("a").get_text() == "bad"
        assert not soup.find("a").has_attr("href")

    def test_idempotent(self) -> None:
        html = (
            f'<article><h1>T</h1><img src="{BASE}/a.png" alt="A">'
            f'<a href="{BASE}/doc.pdf">pdf</a><a href="{BASE}/x/">x</a>'
            f'<div style="background-image:url({BASE}/bg.png)">bg</div></article>'
        )
        once = sanitize(html, BASE)
        assert sanitize(once, BASE) == once


class TestExtractTitle:
    def test_reads_title(self) -> None:
        assert extract_title("<title> Hello </title>", "fallback") == "Hello"

    def test_fallback_when_missing(self) -> None:
        assert extract_title("<p>no title</p>", "https://ex.com/a") == "https://ex.com/a"

    def test_fallback_when_empty(self) -> None:
        assert extract_title("<title>  </title>", "fb") == "fb"
