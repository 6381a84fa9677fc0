"""indie_scout.scoring.quality: combines sub-scores into an admission decision."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from indie_scout.parser.html_parser import ExtractedContent
from indie_scout.scoring import signals
from indie_scout.scoring.classifier import (
    NEUTRAL_CLASSIFICATION,
    DomainClassification,
    DomainClassifier,
    IndexingPurpose,
    PlatformType,
)

__all__ = ("SiteCategory", "ScoreBreakdown", "QualityScore", "QualityScorer")

logger = logging.getLogger("IndieScout")


class SiteCategory(str, Enum):
    WEBRING = "webring"
    GUESTBOOK = "guestbook"
    PORTFOLIO = "portfolio"
    PERSONAL_BLOG = "personal_blog"
    COMMUNITY = "community"
    RESOURCE = "resource"
    OTHER = "other"


# first match wins
_CATEGORY_PATTERNS: Tuple[Tuple[SiteCategory, re.Pattern[str]], ...] = (
    (SiteCategory.WEBRING, re.compile(r"\bweb ?rings?\b", re.I)),
    (SiteCategory.GUESTBOOK, re.compile(r"\bguest ?books?\b", re.I)),
    (SiteCategory.PORTFOLIO, re.compile(r"\b(portfolio|resume|cv|hire me|case stud(y|ies))\b", re.I)),
    (SiteCategory.PERSONAL_BLOG, re.compile(r"\b(blog|weblog|diary|journal|posts)\b", re.I)),
    (SiteCategory.COMMUNITY, re.compile(r"\b(forum|community|club|members|collective)\b", re.I)),
    (SiteCategory.RESOURCE, re.compile(r"\b(tutorials?|guides?|documentation|resources?|wiki|reference)\b", re.I)),
)

_BLOCKED_PURPOSES = frozenset({IndexingPurpose.LINK_EXTRACTION, IndexingPurpose.REJECTED})


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    indie_web: int = 0
    personal_site: int = 0
    content_quality: int = 0
    tech_stack: int = 0
    language: int = 0
    freshness: int = 0
    user_submission: int = 0
    corporate_penalty: int = 0
    parked_penalty: int = 0
    ai_slop_penalty: int = 0

    @property
    def subtotal(self) -> int:
        return (
            self.indie_web
            + self.personal_site
            + self.content_quality
            + self.tech_stack
            + self.language
            + self.freshness
            + self.user_submission
        )


@dataclass(frozen=True, slots=True)
class QualityScore:
    """Result of scoring one (content, url) pair."""

    total_score: int
    breakdown: ScoreBreakdown
    should_auto_submit: bool
    reasons: Tuple[str, ...]
    category: SiteCategory
    indexing_purpose: IndexingPurpose
    platform_type: PlatformType
    max_score: int = signals.MAX_SCORE

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reasons"] = list(self.reasons)
        data["category"] = self.category.value
        data["indexing_purpose"] = self.indexing_purpose.value
        data["platform_type"] = self.platform_type.value
        return data


def determine_category(content: ExtractedContent) -> SiteCategory:
    """Site archetype from text patterns only, independent of the score."""
    text = f"{signals.combined_text(content)} {' '.join(content.keywords)}"
    for category, pattern in _CATEGORY_PATTERNS:
        if category is SiteCategory.PERSONAL_BLOG and content.is_personal_site:
            return category
        if pattern.search(text):
            return category
    return SiteCategory.OTHER


class QualityScorer:
    """
    Deterministic multi-factor scorer.

    The only collaborator is an optional :class:`DomainClassifier`; when it is
    missing or raises, the neutral classification (modifier 1.0) is used.
    ``today`` is injectable so freshness is reproducible in tests.
    """

    def __init__(
        self,
        classifier: Optional[DomainClassifier] = None,
        *,
        today: Callable[[], date] = date.today,
        auto_submit_threshold: int = signals.AUTO_SUBMIT_THRESHOLD,
    ) -> None:
        self.classifier = classifier
        self.today = today
        self.auto_submit_threshold = auto_submit_threshold

    def classify(self, url: str) -> DomainClassification:
        if self.classifier is None:
            return NEUTRAL_CLASSIFICATION
        try:
            return self.classifier.classify(url)
        except Exception as exc:  # noqa: BLE001 - classification is advisory
            logger.warning("Domain classification failed for %s: %s", url, exc)
            return NEUTRAL_CLASSIFICATION

    def assess(self, content: ExtractedContent, url: str, is_user_submission: bool = False) -> QualityScore:
        classification = self.classify(url)

        if classification.platform_type is PlatformType.CORPORATE_PROFILE:
            return QualityScore(
                total_score=0,
                breakdown=ScoreBreakdown(),
                should_auto_submit=False,
                reasons=("Corporate profile: link extraction only", *classification.reasons),
                category=SiteCategory.OTHER,
                indexing_purpose=IndexingPurpose.LINK_EXTRACTION,
                platform_type=PlatformType.CORPORATE_PROFILE,
            )

        reasons: List[str] = []
        indie_web = signals.score_indieweb(content)
        personal = signals.score_personal_site(content, url)
        quality = signals.score_content_quality(content)
        tech = signals.score_tech_stack(content)
        language = signals.score_language(content)
        freshness = signals.score_freshness(content, self.today())
        submission = signals.USER_SUBMISSION_BONUS if is_user_submission else 0

        if indie_web:
            reasons.append(f"IndieWeb markers detected (+{indie_web} points)")
        if personal:
            reasons.append(f"Personal site indicators (+{personal} points)")
        if quality:
            reasons.append(f"Content quality (+{quality} points)")
        if content.tech_stack:
            reasons.append(f"Tech stack {', '.join(content.tech_stack)} (+{tech} points)")
        else:
            reasons.append(f"Simple hand-written HTML (+{tech} points)")
        if language == signals.LANGUAGE_MAX:
            reasons.append(f"Language detected: {content.language} (+{language} points)")
        else:
            reasons.append(f"Language uncertain (+{language} points)")
        reasons.append(f"Freshness (+{freshness} points)")
        if submission:
            reasons.append(f"User submission (+{submission} points)")

        subtotal = indie_web + personal + quality + tech + language + freshness + submission
        total = min(subtotal, signals.MAX_SCORE)
        if subtotal > signals.MAX_SCORE:
            reasons.append(f"Score capped at {signals.MAX_SCORE}")

        corporate = signals.corporate_penalty(content)
        if corporate:
            reasons.append(f"Corporate language or scale (-{corporate} points)")
        parked = signals.parked_penalty(content)
        if parked:
            reasons.append(f"Parked domain (-{parked} points)")
        slop, slop_reasons = signals.ai_slop_penalty(content)
        reasons.extend(slop_reasons)
        total -= corporate + parked + slop

        total = signals.apply_modifier(max(total, 0), classification.score_modifier)
        total = min(total, signals.MAX_SCORE)
        if classification.score_modifier != 1.0:
            reasons.append(
                f"Domain modifier x{classification.score_modifier:g} ({classification.platform_type.value})"
            )
        reasons.extend(classification.reasons)

        breakdown = ScoreBreakdown(
            indie_web=indie_web,
            personal_site=personal,
            content_quality=quality,
            tech_stack=tech,
            language=language,
            freshness=freshness,
            user_submission=submission,
            corporate_penalty=corporate,
            parked_penalty=parked,
            ai_slop_penalty=slop,
        )

        purpose = classification.indexing_purpose
        should_auto_submit = total >= self.auto_submit_threshold and purpose not in _BLOCKED_PURPOSES
        if should_auto_submit:
            reasons.append(f"PASS: meets auto-submission threshold ({self.auto_submit_threshold})")
        elif purpose in _BLOCKED_PURPOSES:
            reasons.append(f"FAIL: indexing purpose is {purpose.value}")
        else:
            reasons.append(f"FAIL: below auto-submission threshold ({self.auto_submit_threshold})")

        return QualityScore(
            total_score=total,
            breakdown=breakdown,
            should_auto_submit=should_auto_submit,
            reasons=tuple(reasons),
            category=determine_category(content),
            indexing_purpose=purpose,
            platform_type=classification.platform_type,
        )
