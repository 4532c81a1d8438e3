"""Brand/competitor mention and citation extraction from LLM answers."""

import logging
import re
from urllib.parse import urlsplit

from geoscore.models.analysis import CitationMatch, EntityType, MentionMatch, Sentiment

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 50

POSITIVE_WORDS = frozenset(
    {"good", "great", "excellent", "best", "amazing", "outstanding", "superior"}
)
NEGATIVE_WORDS = frozenset(
    {"bad", "poor", "worst", "terrible", "awful", "inferior", "disappointing"}
)

URL_PATTERN = re.compile(r"https?://[^\s]+")
WORD_PATTERN = re.compile(r"[a-z']+")
URL_TRAILING_PUNCTUATION = ".,;:!?)]}>\"'*`"


def _words(text: str) -> set[str]:
    return set(WORD_PATTERN.findall(text.lower()))


def has_positive_language(text: str) -> bool:
    return not POSITIVE_WORDS.isdisjoint(_words(text))


def has_negative_language(text: str) -> bool:
    return not NEGATIVE_WORDS.isdisjoint(_words(text))


def classify_sentiment(text: str) -> Sentiment:
    """Lexicon sentiment: whichever word list has more hits wins."""
    words = WORD_PATTERN.findall(text.lower())
    positive = sum(1 for word in words if word in POSITIVE_WORDS)
    negative = sum(1 for word in words if word in NEGATIVE_WORDS)

    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def mention_context(text: str, start: int, length: int) -> str:
    """Text around a match, ``CONTEXT_CHARS`` either side."""
    begin = max(0, start - CONTEXT_CHARS)
    end = min(len(text), start + length + CONTEXT_CHARS)
    return text[begin:end].strip()


def _name_pattern(name: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(name.strip())}(?!\w)", re.IGNORECASE)


def find_first_occurrence(text: str, names: list[str]) -> tuple[int, int] | None:
    """Earliest ``(offset, length)`` of any of ``names`` in ``text``."""
    best: tuple[int, int] | None = None
    for name in names:
        if not name or not name.strip():
            continue
        match = _name_pattern(name).search(text)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), match.end() - match.start())
    return best


def find_all_contexts(text: str, name: str) -> list[str]:
    """Context snippet for every occurrence of ``name``."""
    if not name or not name.strip():
        return []
    return [
        mention_context(text, match.start(), match.end() - match.start())
        for match in _name_pattern(name).finditer(text)
    ]


class MentionExtractor:
    """
    Finds the brand and its tracked competitors in an answer.

    Each entity yields at most one mention, at its first occurrence.
    ``position`` is the entity's 1-based rank when all detected entities
    are ordered by where they first appear.
    """

    def __init__(
        self,
        brand_name: str,
        brand_variations: list[str] | None = None,
        competitors: dict[str, str] | None = None,
    ):
        self.brand_name = brand_name
        self.brand_names = [brand_name, *(brand_variations or [])]
        # competitor id -> name
        self.competitors = competitors or {}

    def extract(self, text: str) -> list[MentionMatch]:
        found: list[tuple[int, int, EntityType, str, str | None]] = []

        brand_hit = find_first_occurrence(text, self.brand_names)
        if brand_hit:
            found.append((*brand_hit, EntityType.BRAND, self.brand_name, None))

        for competitor_id, name in self.competitors.items():
            hit = find_first_occurrence(text, [name])
            if hit:
                found.append((*hit, EntityType.COMPETITOR, name, competitor_id))

        found.sort(key=lambda item: item[0])

        mentions = []
        for rank, (offset, length, entity_type, name, competitor_id) in enumerate(found, start=1):
            context = mention_context(text, offset, length)
            mentions.append(
                MentionMatch(
                    entity_type=entity_type,
                    entity_name=name,
                    competitor_id=competitor_id,
                    offset=offset,
                    position=rank,
                    context=context,
                    sentiment=classify_sentiment(context),
                )
            )
        return mentions


def extract_citations(text: str) -> list[CitationMatch]:
    """Every http(s) URL in ``text`` in order of appearance."""
    citations: list[CitationMatch] = []

    for raw in URL_PATTERN.findall(text):
        url = raw.rstrip(URL_TRAILING_PUNCTUATION)
        try:
            hostname = urlsplit(url).hostname
        except ValueError:
            logger.debug(f"Skipping malformed URL: {raw}")
            continue
        if not hostname:
            continue

        domain = hostname[4:] if hostname.startswith("www.") else hostname
        citations.append(CitationMatch(url=url, domain=domain, position=len(citations) + 1))

    return citations
