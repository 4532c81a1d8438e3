"""Unit tests for answer drift detection."""

from geoscore.models.analysis import AnswerSnapshot, DriftAnalysis, DriftChanges, DriftSignificance
from geoscore.services.drift import (
    analyze_drift,
    content_hash,
    content_similarity,
    format_drift_report,
    sentiment_flipped,
    should_alert,
)


def snapshot(content: str) -> AnswerSnapshot:
    return AnswerSnapshot(hash=content_hash(content), content=content)


class TestContentSimilarity:
    """Tests for word-level similarity."""

    def test_identical(self):
        assert content_similarity("a b c", "a b c") == 100

    def test_both_empty(self):
        """Test two empty answers are fully similar."""
        assert content_similarity("", "") == 100

    def test_completely_different(self):
        assert content_similarity("a b c d", "w x y z") == 0

    def test_one_word_substituted(self):
        """Test a single substitution out of four words."""
        assert content_similarity("a b c d", "a b x d") == 75

    def test_insertion(self):
        """Test distance is normalized by the longer text."""
        assert content_similarity("a b c", "a b c d") == 75

    def test_whitespace_insensitive(self):
        assert content_similarity("a  b\nc", "a b c") == 100


class TestSentimentFlipped:
    def test_positive_to_negative(self):
        assert sentiment_flipped("Acme is great", "Acme is terrible")

    def test_negative_to_positive(self):
        assert sentiment_flipped("Acme is poor", "Acme is the best")

    def test_same_direction(self):
        assert not sentiment_flipped("Acme is great", "Acme is excellent")


class TestAnalyzeDrift:
    """Tests for analyze_drift."""

    def test_identical_hash_is_no_drift(self):
        """Test identical answers short-circuit to an empty analysis."""
        drift = analyze_drift(snapshot("Acme is great"), snapshot("Acme is great"), "Acme")

        assert drift == DriftAnalysis()
        assert drift.has_drift is False
        assert drift.changes.content_similarity == 100

    def test_small_edit_is_low_drift(self):
        """Test a one-word change in an answer that never names the brand."""
        previous = snapshot("Acme and Globex both offer a CRM for small teams today")
        current = snapshot("Acme and Globex both offer a CRM for small teams now")

        drift = analyze_drift(previous, current, "Initech")

        assert drift.changes.content_similarity == 91
        assert drift.changes.positioning_changed is False
        assert drift.significance == DriftSignificance.LOW
        assert drift.has_drift is False
        assert drift.drift_score == 4

    def test_brand_removed_and_sentiment_flipped(self):
        """Test a rewrite that drops the brand and turns negative."""
        previous = snapshot("Acme is an excellent CRM with great support")
        current = snapshot("Globex is the usual pick but its support is poor")

        drift = analyze_drift(previous, current, "Acme")

        assert drift.changes.mentions_removed
        assert drift.changes.mentions_added == []
        assert drift.changes.sentiment_changed is True
        assert drift.changes.positioning_changed is True
        assert drift.has_drift is True
        assert drift.significance == DriftSignificance.HIGH
        assert "Sentiment change detected" in drift.alerts
        assert "Major content rewrite detected" in drift.alerts
        assert "1 mention(s) removed" in drift.alerts

    def test_score_capped_at_100(self):
        """Test many mention changes cannot push the score past 100."""
        previous = snapshot(" ".join(f"Acme{i} Acme" for i in range(20)) + " great")
        current = snapshot("nothing here is poor")

        drift = analyze_drift(previous, current, "Acme")

        assert drift.drift_score == 100


class TestShouldAlert:
    def test_high_significance(self):
        assert should_alert(DriftAnalysis(significance=DriftSignificance.HIGH))

    def test_sentiment_change(self):
        assert should_alert(DriftAnalysis(changes=DriftChanges(sentiment_changed=True)))

    def test_many_removed_mentions(self):
        changes = DriftChanges(mentions_removed=["a", "b", "c"])
        assert should_alert(DriftAnalysis(changes=changes))

    def test_quiet_drift(self):
        changes = DriftChanges(mentions_removed=["a", "b"])
        assert not should_alert(DriftAnalysis(significance=DriftSignificance.MEDIUM, changes=changes))


class TestFormatDriftReport:
    def test_report_lists_changes_and_alerts(self):
        """Test the plain-text report includes each populated section."""
        drift = DriftAnalysis(
            has_drift=True,
            drift_score=42,
            significance=DriftSignificance.MEDIUM,
            changes=DriftChanges(
                mentions_added=["Acme now leads"],
                sentiment_changed=True,
                content_similarity=60,
            ),
            alerts=["1 new mention(s) detected"],
        )

        report = format_drift_report(drift)

        assert report.startswith("Drift Score: 42/100 (medium significance)")
        assert "New Mentions (1):" in report
        assert "Removed Mentions" not in report
        assert "Sentiment: Changed" in report
        assert "Content Similarity: 60%" in report
        assert "  - 1 new mention(s) detected" in report
