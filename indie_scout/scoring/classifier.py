"""
Domain classification: decides what a URL's host is (independent site, indie
hosting platform, corporate profile, ...) and how much its heuristic score
should be trusted.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Optional, Tuple
from urllib.parse import urlparse

from indie_scout.utils import extract_hostname, is_valid_url

__all__ = (
    "PlatformType",
    "IndexingPurpose",
    "DomainClassification",
    "DomainClassifier",
    "NEUTRAL_CLASSIFICATION",
)


class PlatformType(str, Enum):
    INDEPENDENT = "independent"
    INDIE_PLATFORM = "indie_platform"
    CORPORATE_PROFILE = "corporate_profile"
    CORPORATE_GENERIC = "corporate_generic"
    UNKNOWN = "unknown"


class IndexingPurpose(str, Enum):
    FULL_INDEX = "full_index"
    LINK_EXTRACTION = "link_extraction"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class DomainClassification:
    """Verdict for one URL: platform type, indexing purpose and score modifier."""

    platform_type: PlatformType
    indexing_purpose: IndexingPurpose
    score_modifier: float
    reasons: Tuple[str, ...] = ()
    confidence: float = 0.5
    platform_name: Optional[str] = None
    should_extract_links: bool = False


NEUTRAL_CLASSIFICATION = DomainClassification(
    platform_type=PlatformType.UNKNOWN,
    indexing_purpose=IndexingPurpose.FULL_INDEX,
    score_modifier=1.0,
    reasons=(),
    confidence=0.0,
)


# --------------------------------------------------------------------------- #
#                          Platform registries                                #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class _CorporatePlatform:
    domain: str
    category: str
    profile: Tuple[str, ...] = ("/*",)
    exclude: Tuple[str, ...] = field(default_factory=tuple)


_KNOWLEDGE_BASE = "knowledge_base"

CORPORATE_PLATFORMS: Tuple[_CorporatePlatform, ...] = (
    # social media
    _CorporatePlatform("youtube.com", "social_media", ("/@*", "/channel/*", "/c/*", "/user/*")),
    _CorporatePlatform("twitter.com", "social_media", exclude=("/home", "/explore", "/settings", "/login", "/signup")),
    _CorporatePlatform("x.com", "social_media", exclude=("/home", "/explore", "/settings", "/login", "/signup")),
    _CorporatePlatform("instagram.com", "social_media", exclude=("/accounts/*", "/explore", "/reels", "/direct")),
    _CorporatePlatform(
        "facebook.com", "social_media", ("/people/*", "/profile.php", "/*"),
        ("/groups", "/marketplace", "/watch", "/events", "/pages"),
    ),
    _CorporatePlatform("linkedin.com", "social_media", ("/in/*", "/company/*")),
    _CorporatePlatform("tiktok.com", "social_media", ("/@*",)),
    _CorporatePlatform("threads.net", "social_media", ("/@*",)),
    _CorporatePlatform("bsky.app", "social_media", ("/profile/*",)),
    _CorporatePlatform("pinterest.com", "social_media", exclude=("/pin/*", "/search", "/ideas")),
    # development
    _CorporatePlatform(
        "github.com", "development",
        exclude=("/features", "/pricing", "/explore", "/marketplace", "/sponsors", "/*/*", "/orgs/*"),
    ),
    _CorporatePlatform("gitlab.com", "development", exclude=("/explore", "/projects", "/groups", "/-/*", "/*/*")),
    _CorporatePlatform("bitbucket.org", "development", exclude=("/repo", "/product", "/*/*")),
    _CorporatePlatform("codepen.io", "development", exclude=("/pen/*", "/pens", "/trending", "/challenges")),
    _CorporatePlatform("replit.com", "development", ("/@*",)),
    _CorporatePlatform("glitch.com", "development", ("/@*",)),
    # large federated instances
    _CorporatePlatform("mastodon.social", "federated", ("/@*",)),
    _CorporatePlatform("mastodon.online", "federated", ("/@*",)),
    _CorporatePlatform("fosstodon.org", "federated", ("/@*",)),
    _CorporatePlatform("mstdn.social", "federated", ("/@*",)),
    # content
    _CorporatePlatform("medium.com", "content", ("/@*",)),
    _CorporatePlatform("substack.com", "content", ("/@*",)),
    _CorporatePlatform("dev.to", "content", exclude=("/t/*", "/tags", "/search", "/top")),
    _CorporatePlatform("hashnode.dev", "content", ("/@*",)),
    # creative
    _CorporatePlatform("behance.net", "creative", exclude=("/gallery/*", "/search", "/joblist")),
    _CorporatePlatform("dribbble.com", "creative", exclude=("/shots/*", "/jobs", "/designers")),
    _CorporatePlatform("deviantart.com", "creative", exclude=("/art/*", "/daily-deviations", "/watch")),
    _CorporatePlatform("artstation.com", "creative", exclude=("/artwork/*", "/marketplace", "/learning")),
    _CorporatePlatform("flickr.com", "creative", ("/people/*", "/photos/*")),
    _CorporatePlatform("unsplash.com", "creative", ("/@*",)),
    # streaming
    _CorporatePlatform("twitch.tv", "streaming", exclude=("/directory", "/videos/*", "/search")),
    _CorporatePlatform("spotify.com", "streaming", ("/artist/*", "/user/*")),
    _CorporatePlatform("soundcloud.com", "streaming", exclude=("/discover", "/stream", "/upload")),
    _CorporatePlatform("vimeo.com", "streaming", exclude=("/watch", "/categories", "/stock")),
    # marketplaces and support
    _CorporatePlatform("etsy.com", "marketplace", ("/shop/*", "/people/*")),
    _CorporatePlatform("patreon.com", "marketplace", exclude=("/creators", "/c/*", "/login", "/signup")),
    _CorporatePlatform("ko-fi.com", "marketplace", exclude=("/explore", "/gold", "/commissions")),
    _CorporatePlatform("buymeacoffee.com", "marketplace", exclude=("/explore", "/creators")),
    # community
    _CorporatePlatform("reddit.com", "community", ("/user/*", "/u/*"), ("/r/*",)),
    _CorporatePlatform("discord.com", "community", ("/users/*",)),
    _CorporatePlatform("discord.gg", "community"),
    _CorporatePlatform("t.me", "community"),
    # link-in-bio services
    _CorporatePlatform("linktr.ee", "link_service"),
    _CorporatePlatform("bio.link", "link_service"),
    _CorporatePlatform("beacons.ai", "link_service"),
    _CorporatePlatform("carrd.co", "link_service"),
    _CorporatePlatform("about.me", "link_service"),
    # knowledge bases are institutional, never indexed
    _CorporatePlatform("wikipedia.org", _KNOWLEDGE_BASE),
    _CorporatePlatform("wikimedia.org", _KNOWLEDGE_BASE),
    _CorporatePlatform("wikidata.org", _KNOWLEDGE_BASE, ("/wiki/*",)),
    _CorporatePlatform("stackoverflow.com", _KNOWLEDGE_BASE, ("/users/*",)),
    _CorporatePlatform("stackexchange.com", _KNOWLEDGE_BASE, ("/users/*",)),
    # corporate media and entertainment
    _CorporatePlatform("cnn.com", "corporate_media", ("/profiles/*", "/author/*")),
    _CorporatePlatform("nytimes.com", "corporate_media", ("/by/*", "/column/*")),
    _CorporatePlatform("theguardian.com", "corporate_media", ("/profile/*",)),
    _CorporatePlatform("imdb.com", "entertainment", ("/name/*", "/title/*")),
)

INDIE_PLATFORMS: Tuple[str, ...] = (
    "neocities.org",
    "tilde.club", "tilde.town", "tilde.team", "tilde.pink", "tilde.zone", "tilde.institute",
    "tildeverse.org", "envs.net", "ctrl-c.club", "sdf.org", "cosmic.voyage", "rawtext.club",
    "github.io", "gitlab.io", "codeberg.page", "netlify.app", "vercel.app", "surge.sh", "pages.dev",
    "bearblog.dev", "micro.blog", "write.as", "hey.world", "mataroa.blog", "prose.sh", "omg.lol",
    "midnight.pub", "smol.pub", "srht.site",
)

_TILDE_DOMAINS: Tuple[str, ...] = (
    "tilde.club", "tilde.town", "tilde.team", "tilde.pink", "tilde.zone", "tilde.institute",
    "tildeverse.org", "ctrl-c.club", "sdf.org", "envs.net", "rawtext.club",
)

# (domain suffix, modifier, reason), first match wins
_INDIE_MODIFIERS: Tuple[Tuple[str, float, str], ...] = (
    ("neocities.org", 1.15, "neocities_community"),
    ("bearblog.dev", 1.1, "indie_blog_platform"),
    ("omg.lol", 1.1, "indie_blog_platform"),
    ("midnight.pub", 1.1, "indie_blog_platform"),
    ("smol.pub", 1.1, "indie_blog_platform"),
    ("micro.blog", 1.1, "indie_blog_platform"),
    ("github.io", 1.05, "github_pages"),
    ("netlify.app", 1.0, "static_hosting"),
    ("vercel.app", 1.0, "static_hosting"),
    ("surge.sh", 1.0, "static_hosting"),
)

URL_SHORTENERS = frozenset(
    {"bit.ly", "tinyurl.com", "short.link", "ow.ly", "buff.ly", "t.co", "goo.gl", "rebrand.ly", "bl.ink", "lnk.to"}
)

HOSTED_BLOG_SUFFIXES: Tuple[str, ...] = (
    "wordpress.com", "blogspot.com", "tumblr.com", "medium.com", "substack.com",
    "ghost.io", "wixsite.com", "squarespace.com", "weebly.com",
)

_CUSTOM_TLDS: Tuple[str, ...] = (
    ".com", ".net", ".org", ".io", ".dev", ".me", ".co", ".xyz", ".app", ".blog",
    ".site", ".page", ".tech", ".codes", ".wtf", ".cool", ".fun",
)
_PERSONAL_NAME_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"^[a-z]+-[a-z]+\."),
    re.compile(r"^[a-z]{3,15}\."),
    re.compile(r"^(my|the)[a-z]+\."),
)
_SERVICE_SUBDOMAINS = frozenset({"www", "blog", "shop", "store", "app", "api", "cdn", "images", "static"})
_PERSONAL_PATHS: Tuple[str, ...] = ("/about", "/blog", "/projects", "/portfolio", "/contact")

INDEPENDENCE_THRESHOLD = 0.7
INDEPENDENT_MODIFIER = 1.2
HOSTED_BLOG_MODIFIER = 0.8


@lru_cache(maxsize=256)
def _pattern_regex(pattern: str) -> re.Pattern[str]:
    return re.compile("^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$")


def _path_matches(path: str, pattern: str) -> bool:
    if "*" in pattern:
        return bool(_pattern_regex(pattern).match(path))
    return path == pattern or path.startswith(pattern + "/")


def _matches_domain(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


class DomainClassifier:
    """Pure, table-driven classifier. One instance can be shared freely."""

    def classify(self, url: str) -> DomainClassification:
        if not is_valid_url(url):
            return DomainClassification(
                PlatformType.UNKNOWN, IndexingPurpose.REJECTED, 0.0, ("invalid_url",), confidence=1.0
            )
        host = extract_hostname(url, strip_www=True)
        path = urlparse(url).path or "/"

        if host in URL_SHORTENERS:
            return DomainClassification(
                PlatformType.CORPORATE_GENERIC, IndexingPurpose.REJECTED, 0.0, ("url_shortener",), confidence=1.0
            )

        platform = self._corporate_platform(host)
        if platform is not None and self._is_profile(path, platform):
            if platform.category == _KNOWLEDGE_BASE:
                return DomainClassification(
                    PlatformType.CORPORATE_GENERIC,
                    IndexingPurpose.REJECTED,
                    0.0,
                    ("knowledge_base_platform", f"platform:{platform.domain}"),
                    confidence=0.95,
                    platform_name=platform.domain,
                )
            return DomainClassification(
                PlatformType.CORPORATE_PROFILE,
                IndexingPurpose.LINK_EXTRACTION,
                0.0,
                ("corporate_platform_profile", f"platform:{platform.domain}"),
                confidence=0.95,
                platform_name=platform.domain,
                should_extract_links=True,
            )

        if self._is_indie_platform(host) or self._is_tilde_url(host, path):
            modifier, reason = self._indie_details(host, path)
            return DomainClassification(
                PlatformType.INDIE_PLATFORM,
                IndexingPurpose.FULL_INDEX,
                modifier,
                ("indie_hosting_platform", reason),
                confidence=0.95,
            )

        if self._is_hosted_blog(host):
            return DomainClassification(
                PlatformType.INDIE_PLATFORM,
                IndexingPurpose.PENDING_REVIEW,
                HOSTED_BLOG_MODIFIER,
                ("custom_subdomain_blog",),
                confidence=0.7,
            )

        if platform is not None:
            return DomainClassification(
                PlatformType.CORPORATE_GENERIC,
                IndexingPurpose.REJECTED,
                0.0,
                ("corporate_platform_non_profile",),
                confidence=0.9,
                platform_name=platform.domain,
            )

        independence = self._independence(host, path)
        if independence > INDEPENDENCE_THRESHOLD:
            return DomainClassification(
                PlatformType.INDEPENDENT,
                IndexingPurpose.FULL_INDEX,
                INDEPENDENT_MODIFIER,
                ("independent_domain", "custom_hosting"),
                confidence=independence,
            )

        return DomainClassification(
            PlatformType.UNKNOWN, IndexingPurpose.PENDING_REVIEW, 1.0, ("classification_uncertain",)
        )

    @staticmethod
    def _corporate_platform(host: str) -> Optional[_CorporatePlatform]:
        for platform in CORPORATE_PLATFORMS:
            if _matches_domain(host, platform.domain):
                return platform
        return None

    @staticmethod
    def _is_profile(path: str, platform: _CorporatePlatform) -> bool:
        if any(_path_matches(path, pattern) for pattern in platform.exclude):
            return False
        return any(_path_matches(path, pattern) for pattern in platform.profile)

    @staticmethod
    def _is_indie_platform(host: str) -> bool:
        return any(_matches_domain(host, platform) for platform in INDIE_PLATFORMS)

    @staticmethod
    def _is_tilde_url(host: str, path: str) -> bool:
        return "/~" in path and any(_matches_domain(host, domain) for domain in _TILDE_DOMAINS)

    def _indie_details(self, host: str, path: str) -> Tuple[float, str]:
        if self._is_tilde_url(host, path) or any(_matches_domain(host, d) for d in _TILDE_DOMAINS):
            return 1.1, "tilde_community"
        for suffix, modifier, reason in _INDIE_MODIFIERS:
            if _matches_domain(host, suffix):
                return modifier, reason
        return 1.05, "indie_platform"

    @staticmethod
    def _is_hosted_blog(host: str) -> bool:
        labels = host.split(".")
        return any(host.endswith("." + suffix) and len(labels) == suffix.count(".") + 2 for suffix in HOSTED_BLOG_SUFFIXES)

    @staticmethod
    def _independence(host: str, path: str) -> float:
        score = 0.5
        if host.endswith(_CUSTOM_TLDS):
            score += 0.2
        labels = host.split(".")
        if len(labels) == 2 and len(labels[0]) < 20:
            score += 0.1
        if any(pattern.match(host) for pattern in _PERSONAL_NAME_PATTERNS):
            score += 0.15
        if labels[0] not in _SERVICE_SUBDOMAINS:
            score += 0.1
        if any(marker in path for marker in _PERSONAL_PATHS):
            score += 0.1
        return min(1.0, score)

