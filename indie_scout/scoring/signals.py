"""
Pure sub-score functions used by :class:`~indie_scout.scoring.quality.QualityScorer`.

Every function takes an :class:`ExtractedContent` (plus the URL or the
current date where needed) and returns an integer inside its own band.
Thresholds and weights are module-level constants.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from datetime import date
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from indie_scout.parser.html_parser import ExtractedContent
from indie_scout.utils import extract_hostname

# --------------------------------------------------------------------------- #
# Admission policy                                                            #
# --------------------------------------------------------------------------- #

MAX_SCORE = 100
# inline admission by the crawl worker
AUTO_SUBMIT_THRESHOLD = 40
# promotion from the human review queue
REVIEW_QUEUE_THRESHOLD = 50
# new catalog entries at or above this are flagged for auto-validation
AUTO_VALIDATE_THRESHOLD = 70

# --------------------------------------------------------------------------- #
# Bands and weights                                                           #
# --------------------------------------------------------------------------- #

INDIEWEB_MAX = 40
INDIEWEB_BASE = 25
INDIEWEB_AUTHOR_BONUS = 5
INDIEWEB_DATE_BONUS = 5
INDIEWEB_PERSONAL_BONUS = 5

PERSONAL_MAX = 40
PERSONAL_WEIGHT_INDIEWEB = 6
PERSONAL_WEIGHT_AUTHOR = 6
PERSONAL_WEIGHT_DOMAIN = 10
PERSONAL_WEIGHT_FIRST_PERSON = 8
PERSONAL_WEIGHT_SCALE = 6
PERSONAL_WEIGHT_INDIE_PAGES = 4

CONTENT_MAX = 20
CONTENT_BASE = 8
CONTENT_LENGTH_STEPS: Tuple[Tuple[int, int], ...] = ((100, 2), (500, 2), (2000, 2))
CONTENT_DESCRIPTION_MIN_CHARS = 10
CONTENT_DESCRIPTION_BONUS = 3
CONTENT_KEYWORD_STEPS: Tuple[Tuple[int, int], ...] = ((1, 2), (5, 1))
LINK_FARM_MIN_LINKS = 20
LINK_FARM_MAX_CHARS_PER_LINK = 50
LINK_FARM_PENALTY = 6
STUFFING_MIN_WORDS = 30
STUFFING_MAX_SHARE = 0.15
STUFFING_PENALTY = 4

TECH_MAX = 15
TECH_NONE_DETECTED = 15
TECH_HANDMADE_FRIENDLY = 12
TECH_DETECTED = 10
HANDMADE_FRIENDLY_STACKS = frozenset({"Hugo", "Jekyll", "Eleventy", "Astro"})

LANGUAGE_MAX = 10
LANGUAGE_UNCERTAIN = 5

FRESHNESS_MAX = 5
FRESHNESS_FLOOR = 2
FRESHNESS_RECENT_DAYS = 30
FRESHNESS_RECENT_BONUS = 3
FRESHNESS_YEAR_DAYS = 365
FRESHNESS_YEAR_BONUS = 1

USER_SUBMISSION_BONUS = 30

# --------------------------------------------------------------------------- #
# Penalties                                                                   #
# --------------------------------------------------------------------------- #

CORPORATE_PENALTY = 15
CORPORATE_MAX_CONTENT_LENGTH = 100_000
CORPORATE_MAX_LINKS = 150
PARKED_PENALTY = 40

AI_SLOP_PHRASE_PENALTY = 10
AI_SLOP_MANY_PHRASES = 3
AI_SLOP_MANY_PHRASES_PENALTY = 25
AI_SLOP_LISTICLE_PENALTY = 10
AI_SLOP_DIVERSITY_PENALTY = 10
LEXICAL_MIN_WORDS = 60
LEXICAL_MIN_RATIO = 0.35

# --------------------------------------------------------------------------- #
# Patterns                                                                    #
# --------------------------------------------------------------------------- #

CORPORATE_TERMS_RE = re.compile(
    r"\b(enterprise|corporation|incorporated|llc|our team|our services|our clients|solutions|"
    r"customers|pricing|request a demo|contact sales|b2b|stakeholders|employees)\b",
    re.I,
)

FIRST_PERSON_RE = re.compile(
    r"\b(i am|i'm|my|me|myself|i have|i work|i build|i create|i write|i love)\b|"
    r"(welcome to my|here you'll find|check out my)",
    re.I,
)

PERSONAL_DOMAIN_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"^[a-z]+-[a-z]+\."),
    re.compile(r"^[a-z]{3,15}\.(me|dev|xyz|blog|site|page|co|io|name)$"),
    re.compile(r"^[a-z0-9-]+\.(github\.io|gitlab\.io|netlify\.app|vercel\.app|surge\.sh|neocities\.org|bearblog\.dev)$"),
)

INDIE_PAGE_PATHS: Tuple[str, ...] = ("/now", "/uses", "/guestbook", "/colophon", "/blogroll", "/webring", "/links")

AI_SLOP_PHRASES: Tuple[str, ...] = (
    "delve into",
    "in today's fast-paced world",
    "in the ever-evolving",
    "unlock the power",
    "harness the power",
    "it's important to note",
    "game-changer",
    "elevate your",
    "navigate the complexities",
    "a testament to",
    "embark on a journey",
    "look no further",
    "in the realm of",
    "seamlessly",
    "revolutionize",
    "rich tapestry",
    "dive deep into",
    "whether you're a beginner",
)

LISTICLE_RE = re.compile(r"\b1\.\s*introduction\b.*\b2\.\s*(benefits|what is|why|key)", re.I | re.S)
_LANGUAGE_TAG_RE = re.compile(r"^[a-z]{2,3}(-[a-z0-9]{2,8})*$", re.I)
_WORD_RE = re.compile(r"[a-z']+")


# --------------------------------------------------------------------------- #
# Helpers                                                                     #
# --------------------------------------------------------------------------- #


def combined_text(content: ExtractedContent) -> str:
    return f"{content.title} {content.description or ''} {content.snippet}"


def _words(text: str) -> List[str]:
    return _WORD_RE.findall(text.lower())


def has_personal_domain(url: str) -> bool:
    host = extract_hostname(url, strip_www=True)
    return any(pattern.match(host) for pattern in PERSONAL_DOMAIN_PATTERNS)


def has_first_person_voice(content: ExtractedContent) -> bool:
    return bool(FIRST_PERSON_RE.search(combined_text(content)))


def has_corporate_language(content: ExtractedContent) -> bool:
    return bool(CORPORATE_TERMS_RE.search(combined_text(content)))


def has_individual_scale(content: ExtractedContent) -> bool:
    """Small, focused sites are usually run by one person."""
    if content.content_length < 5000 and len(content.links) < 20:
        return True
    return not has_corporate_language(content)


def has_indie_pages(content: ExtractedContent) -> bool:
    for link in content.links:
        try:
            path = urlparse(link).path.rstrip("/").lower()
        except ValueError:
            continue
        if path in INDIE_PAGE_PATHS:
            return True
    return False


def _days_since(published: str, today: date) -> Optional[int]:
    try:
        return (today - date.fromisoformat(published)).days
    except ValueError:
        return None


# --------------------------------------------------------------------------- #
# Sub-scores                                                                  #
# --------------------------------------------------------------------------- #


def score_indieweb(content: ExtractedContent) -> int:
    if not content.has_indieweb_markers:
        return 0
    score = INDIEWEB_BASE
    if content.author:
        score += INDIEWEB_AUTHOR_BONUS
    if content.published_date:
        score += INDIEWEB_DATE_BONUS
    if content.is_personal_site:
        score += INDIEWEB_PERSONAL_BONUS
    return min(score, INDIEWEB_MAX)


def score_personal_site(content: ExtractedContent, url: str) -> int:
    indicators = (
        (content.has_indieweb_markers, PERSONAL_WEIGHT_INDIEWEB),
        (bool(content.author), PERSONAL_WEIGHT_AUTHOR),
        (has_personal_domain(url), PERSONAL_WEIGHT_DOMAIN),
        (has_first_person_voice(content), PERSONAL_WEIGHT_FIRST_PERSON),
        (has_individual_scale(content), PERSONAL_WEIGHT_SCALE),
        (has_indie_pages(content), PERSONAL_WEIGHT_INDIE_PAGES),
    )
    return min(sum(weight for present, weight in indicators if present), PERSONAL_MAX)


def is_link_farm(content: ExtractedContent) -> bool:
    links = len(content.links)
    return links >= LINK_FARM_MIN_LINKS and content.content_length / links < LINK_FARM_MAX_CHARS_PER_LINK


def is_keyword_stuffed(content: ExtractedContent) -> bool:
    words = [w for w in _words(combined_text(content)) if len(w) > 3]
    if len(words) < STUFFING_MIN_WORDS:
        return False
    _, top = Counter(words).most_common(1)[0]
    return top / len(words) > STUFFING_MAX_SHARE


def score_content_quality(content: ExtractedContent) -> int:
    score = CONTENT_BASE
    for threshold, bonus in CONTENT_LENGTH_STEPS:
        if content.content_length > threshold:
            score += bonus
    if content.description and len(content.description) > CONTENT_DESCRIPTION_MIN_CHARS:
        score += CONTENT_DESCRIPTION_BONUS
    for threshold, bonus in CONTENT_KEYWORD_STEPS:
        if len(content.keywords) >= threshold:
            score += bonus
    if is_link_farm(content):
        score -= LINK_FARM_PENALTY
    if is_keyword_stuffed(content):
        score -= STUFFING_PENALTY
    return max(0, min(score, CONTENT_MAX))


def score_tech_stack(content: ExtractedContent) -> int:
    """No detected stack scores highest: hand-written HTML is never penalised."""
    if not content.tech_stack:
        return TECH_NONE_DETECTED
    if any(tech in HANDMADE_FRIENDLY_STACKS for tech in content.tech_stack):
        return TECH_HANDMADE_FRIENDLY
    return TECH_DETECTED


def score_language(content: ExtractedContent) -> int:
    if content.language and _LANGUAGE_TAG_RE.match(content.language):
        return LANGUAGE_MAX
    return LANGUAGE_UNCERTAIN


def score_freshness(content: ExtractedContent, today: date) -> int:
    score = FRESHNESS_FLOOR
    if not content.published_date:
        return score
    days = _days_since(content.published_date, today)
    if days is None:
        return score
    if days <= FRESHNESS_RECENT_DAYS:
        score += FRESHNESS_RECENT_BONUS
    if days <= FRESHNESS_YEAR_DAYS:
        score += FRESHNESS_YEAR_BONUS
    return min(score, FRESHNESS_MAX)


# --------------------------------------------------------------------------- #
# Post-sum penalties                                                          #
# --------------------------------------------------------------------------- #


def corporate_penalty(content: ExtractedContent) -> int:
    if has_corporate_language(content):
        return CORPORATE_PENALTY
    if content.content_length > CORPORATE_MAX_CONTENT_LENGTH or len(content.links) > CORPORATE_MAX_LINKS:
        return CORPORATE_PENALTY
    return 0


def parked_penalty(content: ExtractedContent) -> int:
    return PARKED_PENALTY if content.is_parked else 0


def count_ai_slop_phrases(text: str) -> int:
    lowered = text.lower()
    return sum(1 for phrase in AI_SLOP_PHRASES if phrase in lowered)


def has_low_lexical_diversity(text: str) -> bool:
    words = _words(text)
    if len(words) < LEXICAL_MIN_WORDS:
        return False
    return len(set(words)) / len(words) < LEXICAL_MIN_RATIO


def ai_slop_penalty(content: ExtractedContent) -> Tuple[int, List[str]]:
    """Return the total AI-slop penalty and one reason per triggered signal."""
    text = combined_text(content)
    penalty = 0
    reasons: List[str] = []

    phrases = count_ai_slop_phrases(text)
    if phrases >= AI_SLOP_MANY_PHRASES:
        penalty += AI_SLOP_MANY_PHRASES_PENALTY
        reasons.append(f"Many AI filler phrases ({phrases}) (-{AI_SLOP_MANY_PHRASES_PENALTY} points)")
    elif phrases:
        penalty += AI_SLOP_PHRASE_PENALTY
        reasons.append(f"AI filler phrases ({phrases}) (-{AI_SLOP_PHRASE_PENALTY} points)")

    if LISTICLE_RE.search(text):
        penalty += AI_SLOP_LISTICLE_PENALTY
        reasons.append(f"Generic listicle structure (-{AI_SLOP_LISTICLE_PENALTY} points)")

    if has_low_lexical_diversity(text):
        penalty += AI_SLOP_DIVERSITY_PENALTY
        reasons.append(f"Low lexical diversity (-{AI_SLOP_DIVERSITY_PENALTY} points)")

    return penalty, reasons


def apply_modifier(score: int, modifier: float) -> int:
    # epsilon keeps 20 * 1.15 from flooring to 22
    return math.floor(score * modifier + 1e-9)


def validation_tier(score: int) -> str:
    """Where a freshly admitted entry lands in the downstream validation run."""
    if score >= AUTO_VALIDATE_THRESHOLD:
        return "auto"
    if score >= REVIEW_QUEUE_THRESHOLD:
        return "standard"
    return "review"
