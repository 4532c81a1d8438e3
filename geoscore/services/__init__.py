"""Answer analysis services."""

from geoscore.services.drift import analyze_drift, content_hash, format_drift_report, should_alert
from geoscore.services.mentions import MentionExtractor, classify_sentiment, extract_citations

__all__ = [
    "MentionExtractor",
    "analyze_drift",
    "classify_sentiment",
    "content_hash",
    "extract_citations",
    "format_drift_report",
    "should_alert",
]
