# File: indie_scout/scoring/__init__.py
"""indie_scout.scoring: site quality heuristics and domain classification."""

from indie_scout.scoring.classifier import DomainClassification, DomainClassifier, IndexingPurpose, PlatformType
from indie_scout.scoring.quality import QualityScore, QualityScorer, ScoreBreakdown, SiteCategory

__all__ = [
    "DomainClassification",
    "DomainClassifier",
    "IndexingPurpose",
    "PlatformType",
    "QualityScore",
    "QualityScorer",
    "ScoreBreakdown",
    "SiteCategory",
]
