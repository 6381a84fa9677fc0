# File: tests/test_classifier.py
import pytest

from indie_scout.scoring.classifier import DomainClassifier, IndexingPurpose, PlatformType


@pytest.fixture()
def classifier() -> DomainClassifier:
    return DomainClassifier()


@pytest.mark.parametrize(
    "url,platform,purpose,modifier",
    [
        ("not a url", PlatformType.UNKNOWN, IndexingPurpose.REJECTED, 0.0),
        ("https://bit.ly/abc", PlatformType.CORPORATE_GENERIC, IndexingPurpose.REJECTED, 0.0),
        ("https://github.com/alice", PlatformType.CORPORATE_PROFILE, IndexingPurpose.LINK_EXTRACTION, 0.0),
        ("https://www.youtube.com/@alice", PlatformType.CORPORATE_PROFILE, IndexingPurpose.LINK_EXTRACTION, 0.0),
        ("https://github.com/alice/repo", PlatformType.CORPORATE_GENERIC, IndexingPurpose.REJECTED, 0.0),
        ("https://github.com/pricing", PlatformType.CORPORATE_GENERIC, IndexingPurpose.REJECTED, 0.0),
        ("https://en.wikipedia.org/wiki/Cats", PlatformType.CORPORATE_GENERIC, IndexingPurpose.REJECTED, 0.0),
        ("https://alice.neocities.org/", PlatformType.INDIE_PLATFORM, IndexingPurpose.FULL_INDEX, 1.15),
        ("https://alice.bearblog.dev/", PlatformType.INDIE_PLATFORM, IndexingPurpose.FULL_INDEX, 1.1),
        ("https://alice.github.io/", PlatformType.INDIE_PLATFORM, IndexingPurpose.FULL_INDEX, 1.05),
        ("https://alice.netlify.app/", PlatformType.INDIE_PLATFORM, IndexingPurpose.FULL_INDEX, 1.0),
        ("https://tilde.town/~alice/", PlatformType.INDIE_PLATFORM, IndexingPurpose.FULL_INDEX, 1.1),
        ("https://alice.wordpress.com/", PlatformType.INDIE_PLATFORM, IndexingPurpose.PENDING_REVIEW, 0.8),
        ("https://alice.medium.com/", PlatformType.INDIE_PLATFORM, IndexingPurpose.PENDING_REVIEW, 0.8),
        ("https://alice-doe.com/about", PlatformType.INDEPENDENT, IndexingPurpose.FULL_INDEX, 1.2),
        ("http://localhost:8080/", PlatformType.UNKNOWN, IndexingPurpose.PENDING_REVIEW, 1.0),
    ],
)
def test_classification_table(classifier, url, platform, purpose, modifier):
    result = classifier.classify(url)
    assert result.platform_type is platform
    assert result.indexing_purpose is purpose
    assert result.score_modifier == pytest.approx(modifier)


def test_profile_classification_names_platform(classifier):
    result = classifier.classify("https://linkedin.com/in/alice")
    assert result.platform_name == "linkedin.com"
    assert result.should_extract_links
    assert "corporate_platform_profile" in result.reasons


def test_knowledge_base_reason(classifier):
    result = classifier.classify("https://stackoverflow.com/users/1/alice")
    assert "knowledge_base_platform" in result.reasons


def test_www_prefix_ignored(classifier):
    assert classifier.classify("https://www.alice.neocities.org/").score_modifier == pytest.approx(1.15)
