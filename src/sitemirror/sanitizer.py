"""HTML sanitizer for offline rendering.

Pure transform, no I/O. Two passes over a BeautifulSoup tree:

1. normalize: media sources and same-origin links are resolved against the
   site's base URL and rewritten to origin-relative paths. Media ``src``
   attributes move to ``data-src`` so rendering the cached page never
   triggers a network fetch.
2. redact: media elements become short textual placeholders, links to
   binary documents become ``[Document: name]`` and every other link loses
   its ``href``. Forms lose their ``action`` and stylesheet links are dropped.

The result is the body fragment of the page.
"""

from __future__ import annotations

import re
from urllib.parse import unquote, urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

_MEDIA_SOURCE_TAGS = ["img", "video", "audio", "source", "track"]
_STRIPPED_TAGS = ["script", "noscript", "iframe", "object", "embed", "link"]
_BINARY_EXTENSIONS = (".pdf", ".doc", ".docx", ".xls", ".xlsx")
_BACKGROUND_RE = re.compile(
    r"(?<![\w-])background(?:-image)?\s*:[^;]*?url\(\s*(['\"]?)(?P<url>.*?)\1\s*\)[^;]*;?",
    re.IGNORECASE,
)
_PLACEHOLDER_CLASS = "media-placeholder"


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


def _relative_path(url: str, base_url: str) -> str | None:
    """Resolve *url* against *base_url* and return its path and query.

    Returns None for malformed URLs.
    """
    try:
        parts = urlsplit(urljoin(base_url, url.strip()))
    except ValueError:
        return None
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def _same_origin_link(href: str, base_url: str) -> str | None:
    """Origin-relative form of *href* when it points at the base origin, else None."""
    if href.startswith(("#", "mailto:", "tel:", "javascript:", "data:")):
        return None
    try:
        resolved = urljoin(base_url, href.strip())
        parts = urlsplit(resolved)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or _origin(resolved) != _origin(base_url):
        return None
    relative = parts.path or "/"
    if parts.query:
        relative += f"?{parts.query}"
    if parts.fragment:
        relative += f"#{parts.fragment}"
    return relative


def _placeholder(soup: BeautifulSoup, text: str) -> Tag:
    span = soup.new_tag("span", attrs={"class": _PLACEHOLDER_CLASS})
    span.string = text
    return span


def _fragment(soup: BeautifulSoup) -> str:
    root = soup.body if soup.body is not None else soup
    return root.decode_contents()


# ---------------------------------------------------------------------------
# Pass 1: normalize
# ---------------------------------------------------------------------------


def _normalize(soup: BeautifulSoup, base_url: str) -> None:
    for element in soup.find_all(_MEDIA_SOURCE_TAGS):
        src = element.get("src")
        if src:
            relative = _relative_path(src, base_url)
            if relative is not None:
                element["data-src"] = relative
                del element["src"]
        if element.has_attr("srcset"):
            del element["srcset"]
        poster = element.get("poster")
        if poster:
            relative = _relative_path(poster, base_url)
            if relative is not None:
                element["data-poster"] = relative
                del element["poster"]

    for element in soup.find_all(["a", "link"], href=True):
        relative = _same_origin_link(element["href"], base_url)
        if relative is not None:
            element["href"] = relative
    for form in soup.find_all("form", action=True):
        relative = _same_origin_link(form["action"], base_url)
        if relative is not None:
            form["action"] = relative

    for element in soup.find_all(style=_BACKGROUND_RE):
        style = element["style"]
        match = _BACKGROUND_RE.search(style)
        relative = _relative_path(match.group("url"), base_url)
        if relative is None:
            continue
        element["data-background"] = relative
        remaining = _BACKGROUND_RE.sub("", style).strip()
        if remaining:
            element["style"] = remaining
        else:
            del element["style"]


def normalize(html: str, base_url: str) -> str:
    """Rewrite absolute media and same-origin link URLs to relative paths."""
    soup = BeautifulSoup(html, "html.parser")
    _normalize(soup, base_url)
    return _fragment(soup)


# ---------------------------------------------------------------------------
# Pass 2: redact
# ---------------------------------------------------------------------------


def _image_label(img: Tag | None) -> str:
    alt = img.get("alt", "").strip() if img is not None else ""
    return f"[{alt or 'Image'}]"


def _document_name(href: str) -> str | None:
    try:
        path = urlsplit(href).path
    except ValueError:
        return None
    if not path.lower().endswith(_BINARY_EXTENSIONS):
        return None
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


def _redact(soup: BeautifulSoup) -> None:
    for element in soup.find_all(_STRIPPED_TAGS):
        element.decompose()

    for picture in soup.find_all("picture"):
        picture.replace_with(_placeholder(soup, _image_label(picture.find("img"))))
    for img in soup.find_all("img"):
        img.replace_with(_placeholder(soup, _image_label(img)))
    for video in soup.find_all("video"):
        video.replace_with(_placeholder(soup, "[Video]"))
    for audio in soup.find_all("audio"):
        audio.replace_with(_placeholder(soup, "[Audio]"))
    for svg in soup.find_all("svg"):
        svg.replace_with(_placeholder(soup, "[Graphic]"))
    # Stray <source>/<track> left outside a media parent
    for element in soup.find_all(["source", "track"]):
        element.decompose()

    for anchor in soup.find_all("a", href=True):
        name = _document_name(anchor["href"])
        if name is not None:
            anchor.replace_with(_placeholder(soup, f"[Document: {name}]"))
        else:
            del anchor["href"]
    for form in soup.find_all("form", action=True):
        del form["action"]


def redact(html: str) -> str:
    """Replace media and binary-document links with text placeholders."""
    soup = BeautifulSoup(html, "html.parser")
    _redact(soup)
    return _fragment(soup)


def sanitize(html: str, base_url: str) -> str:
    """Normalize then redact *html*, returning an offline-safe body fragment.

    Deterministic and idempotent: sanitizing an already sanitized fragment
    returns it unchanged.
    """
    soup = BeautifulSoup(html, "html.parser")
    _normalize(soup, base_url)
    _redact(soup)
    return _fragment(soup)


def extract_title(html: str, fallback: str) -> str:
    """Text of the first ``<title>`` tag, or *fallback* when absent or empty."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.find("title")
    if title is None:
        return fallback
    text = title.get_text(strip=True)
    return text or fallback
