"""Drift detection between successive answers to the same prompt."""

import hashlib

from geoscore.models.analysis import (
    AnswerSnapshot,
    DriftAnalysis,
    DriftChanges,
    DriftSignificance,
)
from geoscore.services.mentions import (
    find_all_contexts,
    has_negative_language,
    has_positive_language,
)

POSITIONING_SIMILARITY_THRESHOLD = 70
REWRITE_SIMILARITY_THRESHOLD = 50
DRIFT_THRESHOLD = 10
HIGH_SIGNIFICANCE = 60
MEDIUM_SIGNIFICANCE = 30
REMOVED_MENTIONS_ALERT = 2


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def content_similarity(previous: str, current: str) -> int:
    """
    Similarity 0-100 from the word-level Levenshtein distance.

    Two empty texts are 100% similar.
    """
    a = previous.split()
    b = current.split()
    longest = max(len(a), len(b))
    if longest == 0:
        return 100

    # Two-row edit distance
    prev_row = list(range(len(b) + 1))
    for i, word_a in enumerate(a, start=1):
        row = [i] + [0] * len(b)
        for j, word_b in enumerate(b, start=1):
            cost = 0 if word_a == word_b else 1
            row[j] = min(prev_row[j] + 1, row[j - 1] + 1, prev_row[j - 1] + cost)
        prev_row = row

    distance = prev_row[len(b)]
    return round((longest - distance) / longest * 100)


def sentiment_flipped(previous: str, current: str) -> bool:
    """True when positive language turns negative or the reverse."""
    return (has_positive_language(previous) and has_negative_language(current)) or (
        has_negative_language(previous) and has_positive_language(current)
    )


def analyze_drift(previous: AnswerSnapshot, current: AnswerSnapshot, brand_name: str) -> DriftAnalysis:
    """Compare two answers and score how much the brand's portrayal moved."""
    if previous.hash == current.hash:
        return DriftAnalysis()

    similarity = content_similarity(previous.content, current.content)

    previous_mentions = find_all_contexts(previous.content, brand_name)
    current_mentions = find_all_contexts(current.content, brand_name)
    mentions_added = [m for m in current_mentions if m not in previous_mentions]
    mentions_removed = [m for m in previous_mentions if m not in current_mentions]

    sentiment_changed = sentiment_flipped(previous.content, current.content)
    positioning_changed = similarity < POSITIONING_SIMILARITY_THRESHOLD

    score = (100 - similarity) * 0.4
    score += (len(mentions_added) + len(mentions_removed)) * 5
    score += 20 if sentiment_changed else 0
    score += 15 if positioning_changed else 0
    score = min(100, round(score))

    if score >= HIGH_SIGNIFICANCE:
        significance = DriftSignificance.HIGH
    elif score >= MEDIUM_SIGNIFICANCE:
        significance = DriftSignificance.MEDIUM
    else:
        significance = DriftSignificance.LOW

    alerts = []
    if mentions_added:
        alerts.append(f"{len(mentions_added)} new mention(s) detected")
    if mentions_removed:
        alerts.append(f"{len(mentions_removed)} mention(s) removed")
    if sentiment_changed:
        alerts.append("Sentiment change detected")
    if positioning_changed:
        alerts.append("Significant positioning change detected")
    if similarity < REWRITE_SIMILARITY_THRESHOLD:
        alerts.append("Major content rewrite detected")

    return DriftAnalysis(
        has_drift=score > DRIFT_THRESHOLD,
        drift_score=score,
        changes=DriftChanges(
            mentions_added=mentions_added,
            mentions_removed=mentions_removed,
            sentiment_changed=sentiment_changed,
            positioning_changed=positioning_changed,
            content_similarity=similarity,
        ),
        significance=significance,
        alerts=alerts,
    )


def should_alert(drift: DriftAnalysis) -> bool:
    return (
        drift.significance == DriftSignificance.HIGH
        or drift.changes.sentiment_changed
        or len(drift.changes.mentions_removed) > REMOVED_MENTIONS_ALERT
    )


def format_drift_report(drift: DriftAnalysis) -> str:
    """Plain-text summary of a drift analysis for logs."""
    changes = drift.changes
    lines = [f"Drift Score: {drift.drift_score}/100 ({drift.significance.value} significance)", ""]

    for title, mentions in (
        ("New Mentions", changes.mentions_added),
        ("Removed Mentions", changes.mentions_removed),
    ):
        if mentions:
            lines.append(f"{title} ({len(mentions)}):")
            lines.extend(f'  {i}. "{m[:100]}..."' for i, m in enumerate(mentions, start=1))
            lines.append("")

    if changes.sentiment_changed:
        lines.append("Sentiment: Changed")
    if changes.positioning_changed:
        lines.append("Positioning: Changed")

    lines.append(f"Content Similarity: {changes.content_similarity}%")

    if drift.alerts:
        lines.append("")
        lines.append("Alerts:")
        lines.extend(f"  - {alert}" for alert in drift.alerts)

    return "\n".join(lines)
