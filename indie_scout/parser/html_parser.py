"""HTML content extraction for IndieScout.

:func:`extract_content` turns one fetched HTML document into an immutable
:class:`ExtractedContent` record: title, description, snippet, language,
publication date, author, keywords, outbound links and a handful of
heuristic flags (IndieWeb markers, personal site, parked domain, tech stack).

Every text field is resolved from an ordered tuple of candidate getters.
The first getter that yields a non-empty, trimmed value wins and the rest
are never evaluated, so a field's source priority reads top to bottom::

    _TITLE_SOURCES = (
        _meta_property("og:title"),
        _meta_name("twitter:title"),
        _tag_text("title"),
        _tag_text("h1"),
    )

The module is pure: no network access and the caller's markup is never
mutated (the snippet is taken from a separately parsed copy).
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import timezone
from typing import Any, Callable, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag
from dateutil import parser as dateparser

from indie_scout.crawler.link_extractor import DEFAULT_MAX_LINKS, extract_links
from indie_scout.utils import extract_hostname

__all__: Sequence[str] = ("ContentExtractor", "ExtractedContent", "extract_content", "first_non_empty")

MAX_TITLE_CHARS = 200
MAX_DESCRIPTION_CHARS = 500
MAX_SNIPPET_CHARS = 300
MAX_AUTHOR_CHARS = 100
MAX_KEYWORDS = 10
WORDS_PER_HEADING = 3
UNTITLED = "Untitled"

_PARSER = "html.parser"
_WS_RE = re.compile(r"\s+")

Getter = Callable[[BeautifulSoup], Optional[str]]


@dataclass(frozen=True, slots=True)
class ExtractedContent:
    """Normalized result of parsing one HTML document."""

    title: str
    snippet: str
    content_length: int
    description: Optional[str] = None
    language: Optional[str] = None
    published_date: Optional[str] = None
    author: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    links: Tuple[str, ...] = ()
    has_indieweb_markers: bool = False
    is_personal_site: bool = False
    is_parked: bool = False
    tech_stack: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("keywords", "links", "tech_stack"):
            data[key] = list(data[key])
        return data


# ---------------------------------------------------------------------------
# Candidate getters
# ---------------------------------------------------------------------------


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = _WS_RE.sub(" ", text).strip()
    return text or None


def _meta_attr(attr: str, value: str) -> Getter:
    def getter(soup: BeautifulSoup) -> Optional[str]:
        tag = soup.find("meta", attrs={attr: re.compile(f"^{re.escape(value)}$", re.I)})
        if isinstance(tag, Tag):
            content = tag.get("content")
            return content if isinstance(content, str) else None
        return None

    return getter


def _meta_name(name: str) -> Getter:
    return _meta_attr("name", name)


def _meta_property(prop: str) -> Getter:
    return _meta_attr("property", prop)


def _tag_text(selector: str) -> Getter:
    def getter(soup: BeautifulSoup) -> Optional[str]:
        tag = soup.select_one(selector)
        return tag.get_text(" ") if tag is not None else None

    return getter


def _tag_attr(selector: str, attr: str) -> Getter:
    def getter(soup: BeautifulSoup) -> Optional[str]:
        tag = soup.select_one(selector)
        if tag is None:
            return None
        value = tag.get(attr)
        return value if isinstance(value, str) else None

    return getter


def first_non_empty(
    soup: BeautifulSoup,
    sources: Sequence[Getter],
    accept: Callable[[str], bool] = lambda _: True,
) -> Optional[str]:
    """Evaluate *sources* in order and return the first usable cleaned value."""
    for source in sources:
        value = _clean(source(soup))
        if value and accept(value):
            return value
    return None


_TITLE_SOURCES: Tuple[Getter, ...] = (
    _meta_property("og:title"),
    _meta_name("twitter:title"),
    _tag_text("title"),
    _tag_text("h1"),
)

_DESCRIPTION_SOURCES: Tuple[Getter, ...] = (
    _meta_name("description"),
    _meta_property("og:description"),
    _meta_name("twitter:description"),
)

_LANGUAGE_SOURCES: Tuple[Getter, ...] = (
    _tag_attr("html", "lang"),
    _meta_attr("http-equiv", "content-language"),
)

_DATE_SOURCES: Tuple[Getter, ...] = (
    _meta_property("article:published_time"),
    _meta_name("date"),
    _tag_attr("time[datetime]", "datetime"),
    _tag_text(".published, .date, .post-date"),
)

_AUTHOR_SOURCES: Tuple[Getter, ...] = (
    _meta_name("author"),
    _meta_property("article:author"),
    _tag_text(".author, .byline, .by-author"),
    _tag_text('a[rel~="author"]'),
)

_NON_CONTENT_SELECTORS = "script, style, noscript, template, nav, header, footer, aside, .nav, .menu, .sidebar"
_CONTENT_SELECTORS: Tuple[str, ...] = (
    "main",
    "article",
    ".content",
    ".post",
    ".entry",
    "#content",
    "#main",
    "body",
)


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def _extract_title(soup: BeautifulSoup) -> str:
    title = first_non_empty(soup, _TITLE_SOURCES)
    return title[:MAX_TITLE_CHARS] if title else UNTITLED


def _extract_description(soup: BeautifulSoup) -> Optional[str]:
    description = first_non_empty(soup, _DESCRIPTION_SOURCES)
    return description[:MAX_DESCRIPTION_CHARS] if description else None


def _extract_snippet(html: str) -> str:
    soup = BeautifulSoup(html, _PARSER)
    for element in soup.select(_NON_CONTENT_SELECTORS):
        element.decompose()
    container = None
    for selector in _CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container is not None:
            break
    if container is None:
        container = soup
    text = _clean(container.get_text(" ")) or ""
    return text[:MAX_SNIPPET_CHARS]


def _parse_date(value: str) -> Optional[str]:
    try:
        parsed = dateparser.parse(value)
    except (ValueError, OverflowError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def _extract_published_date(soup: BeautifulSoup) -> Optional[str]:
    for source in _DATE_SOURCES:
        value = _clean(source(soup))
        if not value:
            continue
        date = _parse_date(value)
        if date:
            return date
    return None


def _extract_author(soup: BeautifulSoup) -> Optional[str]:
    return first_non_empty(soup, _AUTHOR_SOURCES, accept=lambda v: len(v) < MAX_AUTHOR_CHARS)


def _extract_keywords(soup: BeautifulSoup) -> Tuple[str, ...]:
    keywords: dict[str, None] = {}

    meta = _meta_name("keywords")(soup)
    if meta:
        for token in meta.split(","):
            keyword = token.strip().lower()
            if 2 < len(keyword) < 30:
                keywords.setdefault(keyword)

    for heading in soup.find_all(["h1", "h2", "h3"]):
        words = [w for w in heading.get_text(" ").lower().split() if 3 < len(w) < 20]
        for word in words[:WORDS_PER_HEADING]:
            keywords.setdefault(word)

    return tuple(keywords)[:MAX_KEYWORDS]


def _body_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text()


# ---------------------------------------------------------------------------
# Heuristic flags
# ---------------------------------------------------------------------------

INDIEWEB_MARKERS: Tuple[str, ...] = (
    'rel="me"',
    'class="h-card"',
    'class="h-entry"',
    'class="p-name"',
    'class="dt-published"',
    "microformats",
    "webmention",
    "indieauth",
)

_PERSONAL_PHRASES_RE = re.compile(
    r"\b(personal|blog|portfolio|about me|my name is|i am|i'm|my work|my projects|my thoughts"
    r"|resume|cv|hire me|contact me)\b"
)

_PERSONAL_HOST_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"^[a-z]+\.(me|dev|blog|site)$"),
    re.compile(r"^[a-z]+[a-z-]*\.(com|net|org)$"),
    re.compile(r"^\w+\.name$"),
    re.compile(r"^[a-z0-9-]+\.(github\.io|gitlab\.io|neocities\.org|netlify\.app|bearblog\.dev)$"),
)

PARKING_SERVICE_MARKERS: Tuple[str, ...] = (
    "parking-lander",
    "sedoparking",
    "parklogic",
    "bodis.com",
    "voodoo.com",
    "domains/caf.js",
    "dsnextgen.com",
    "parkingcrew.net",
    "teaminternet.com",
    "px-cloud.net",
)

PARKED_PHRASES: Tuple[str, ...] = (
    "domain is for sale",
    "domain for sale",
    "buy this domain",
    "inquire about this domain",
    "domain name is available",
    "domain parked",
    "parked free",
    "parked at",
    "related searches",
    "related links",
)

REGISTRAR_LANDER_MARKERS: Tuple[str, ...] = ("lander_system", "window.parked")

# (signature, technology); generator meta is checked first, then raw markup
_GENERATOR_SIGNATURES: Tuple[Tuple[str, str], ...] = (
    ("hugo", "Hugo"),
    ("jekyll", "Jekyll"),
    ("gatsby", "Gatsby"),
    ("next.js", "Next.js"),
    ("eleventy", "Eleventy"),
    ("astro", "Astro"),
    ("wordpress", "WordPress"),
    ("ghost", "Ghost"),
    ("drupal", "Drupal"),
    ("joomla", "Joomla"),
    ("squarespace", "Squarespace"),
    ("wix.com", "Wix"),
)

_HTML_SIGNATURES: Tuple[Tuple[str, str], ...] = (
    ("/_next/", "Next.js"),
    ("__next_data__", "Next.js"),
    ("___gatsby", "Gatsby"),
    ("/_nuxt/", "Nuxt.js"),
    ("wp-content", "WordPress"),
    ("wp-includes", "WordPress"),
    ("data-astro-cid", "Astro"),
    ("static.squarespace.com", "Squarespace"),
)


def _detect_indieweb_markers(html_lower: str) -> bool:
    return any(marker in html_lower for marker in INDIEWEB_MARKERS)


def _has_personal_host(url: str) -> bool:
    host = extract_hostname(url, strip_www=True)
    return any(pattern.match(host) for pattern in _PERSONAL_HOST_PATTERNS)


def _detect_personal_site(title: str, description: Optional[str], snippet: str, url: str) -> bool:
    text = f"{title} {description or ''} {snippet}".lower()
    return bool(_PERSONAL_PHRASES_RE.search(text)) or _has_personal_host(url)


def _detect_parked(title: str, body_text: str, html_lower: str) -> bool:
    if any(marker in html_lower for marker in PARKING_SERVICE_MARKERS):
        return True
    text = f"{title} {body_text}".lower()
    if any(phrase in text for phrase in PARKED_PHRASES):
        return True
    return any(marker in html_lower for marker in REGISTRAR_LANDER_MARKERS)


def _detect_tech_stack(soup: BeautifulSoup, html_lower: str) -> Tuple[str, ...]:
    stack: dict[str, None] = {}
    generator = (_meta_name("generator")(soup) or "").lower()
    if generator:
        for signature, tech in _GENERATOR_SIGNATURES:
            if signature in generator:
                stack.setdefault(tech)
    for signature, tech in _HTML_SIGNATURES:
        if signature in html_lower:
            stack.setdefault(tech)
    return tuple(stack)


# ---------------------------------------------------------------------------
# Public function
# ---------------------------------------------------------------------------


def extract_content(html: str, url: str, extract_all_links: bool = False) -> ExtractedContent:
    """Parse *html* fetched from *url* into an :class:`ExtractedContent`.

    Parameters
    ----------
    html
        Raw markup.
    url
        Final URL of the document; relative links resolve against it.
    extract_all_links
        Lift the link cap (hub and webring pages).
    """
    soup = BeautifulSoup(html, _PARSER)
    html_lower = html.lower()

    title = _extract_title(soup)
    description = _extract_description(soup)
    snippet = _extract_snippet(html)
    body_text = _body_text(soup)

    return ExtractedContent(
        title=title,
        description=description,
        snippet=snippet,
        language=first_non_empty(soup, _LANGUAGE_SOURCES),
        published_date=_extract_published_date(soup),
        author=_extract_author(soup),
        keywords=_extract_keywords(soup),
        links=tuple(extract_links(soup, url, limit=None if extract_all_links else DEFAULT_MAX_LINKS)),
        content_length=len(body_text),
        has_indieweb_markers=_detect_indieweb_markers(html_lower),
        is_personal_site=_detect_personal_site(title, description, snippet, url),
        is_parked=_detect_parked(title, body_text, html_lower),
        tech_stack=_detect_tech_stack(soup, html_lower),
    )


class ContentExtractor:
    """Stateless wrapper so the crawler can take an injectable extractor."""

    def extract(self, html: str, url: str, extract_all_links: bool = False) -> ExtractedContent:
        return extract_content(html, url, extract_all_links=extract_all_links)
