"""Relevance scoring for search results.

Scores are additive and unbounded:
  text match (title x100, each artist x50, album x30)
  + popularity x ranker_popularity_scale
  then x platform weight, then +5 if available and +10 for local results.

Popularity falls back to other platforms' popularity for the same ISRC, then
to the average popularity of the same primary artist, so tracks from
platforms that expose no popularity (Apple Music) are not buried.
"""

from __future__ import annotations

from songhub.core.ranking import RankingConfig, RankingConfigProvider
from songhub.schemas.search import RelevanceBreakdown, SearchResult

TITLE_WEIGHT = 100.0
ARTIST_WEIGHT = 50.0
ALBUM_WEIGHT = 30.0
AVAILABILITY_BONUS = 5.0
LOCAL_BONUS = 10.0


def calculate_aggregate_popularity(
    results: list[SearchResult],
    isrc: str,
    weights: dict[str, float] | None = None,
) -> int:
    """Weighted average of per-platform popularity for one ISRC.

    Platforms with weight 0 are excluded; if every contributing platform has
    weight 0 the plain average is used instead. Returns 0 when nothing is
    known.
    """
    if not isrc:
        return 0

    scores: dict[str, int] = {}
    for result in results:
        if result.isrc == isrc and result.popularity > 0:
            scores[result.platform] = result.popularity
    if not scores:
        return 0

    if weights is None:
        weights = RankingConfig().popularity_platform_weights

    total = 0.0
    total_weight = 0.0
    for platform, popularity in scores.items():
        weight = weights.get(platform, 0.0)
        if weight > 0:
            total += popularity * weight
            total_weight += weight

    if total_weight == 0:
        aggregate = sum(scores.values()) // len(scores)
    else:
        aggregate = int(total / total_weight)
    return max(0, min(100, aggregate))


def _similar(a: str, b: str, max_diff: int) -> bool:
    if len(a) != len(b):
        return False
    diff = 0
    for ca, cb in zip(a, b, strict=True):
        if ca != cb:
            diff += 1
            if diff > max_diff:
                return False
    return True


def _word_match(text: str, query_words: list[str]) -> float:
    text_words = text.split()
    matched = sum(1 for qw in query_words if any(qw in tw for tw in text_words))
    ratio = matched / len(query_words)
    if ratio == 1.0:
        return 0.8
    if ratio >= 0.5:
        return 0.6
    if ratio > 0:
        return 0.4
    return 0.0


def _fuzzy_match(text: str, query: str) -> float:
    # Always below the 0.7 substring score
    n = len(query)
    if n >= 3:
        for i in range(len(text) - n + 1):
            if _similar(text[i : i + n], query, 1):
                return 0.3

    common = 0
    for ct, cq in zip(text, query, strict=False):
        if ct != cq:
            break
        common += 1
    if common >= 3 and common > n // 2:
        return common / max(len(text), n) * 0.5
    return 0.0


def text_match(text: str, query: str) -> float:
    """Match quality of ``text`` against an already-lowercased query, 0.0-1.0."""
    if not text or not query:
        return 0.0
    text = text.lower()
    if text == query:
        return 1.0
    if text.startswith(query):
        return 0.9
    if query in text:
        return 0.7

    words = query.split()
    if len(words) > 1:
        return _word_match(text, words)
    return _fuzzy_match(text, query)


class RelevanceScorer:
    def __init__(self, config_provider: RankingConfigProvider | None = None) -> None:
        self.config_provider = config_provider or RankingConfigProvider()

    def text_match(self, text: str, query: str) -> float:
        return text_match(text, query.strip().lower())

    def text_score(self, result: SearchResult, query: str) -> float:
        query = query.strip().lower()
        score = text_match(result.title, query) * TITLE_WEIGHT
        for artist in result.artists:
            score += text_match(artist, query) * ARTIST_WEIGHT
        if result.album:
            score += text_match(result.album, query) * ALBUM_WEIGHT
        return score

    def popularity_input(self, result: SearchResult, candidates: list[SearchResult]) -> int:
        if result.popularity > 0:
            return result.popularity

        if result.isrc:
            best = max(
                (c.popularity for c in candidates if c.isrc == result.isrc),
                default=0,
            )
            if best > 0:
                return best

        if result.artists:
            artist = result.artists[0].lower()
            scores = [
                c.popularity
                for c in candidates
                if c.popularity > 0 and any(a.lower() == artist for a in c.artists)
            ]
            if scores:
                return sum(scores) // len(scores)
        return 0

    def breakdown(
        self,
        result: SearchResult,
        query: str,
        candidates: list[SearchResult],
        config: RankingConfig | None = None,
    ) -> RelevanceBreakdown:
        config = config or self.config_provider.get()
        multiplier = config.platform_weight(result.platform)

        if not query.strip():
            return RelevanceBreakdown(
                text_match=0.0,
                popularity_input=0,
                popularity_contribution=0.0,
                platform_multiplier=multiplier,
                availability_bonus=0.0,
                local_bonus=0.0,
                final=0.0,
                representative_platform=result.platform,
            )

        text = self.text_score(result, query)
        popularity = self.popularity_input(result, candidates)
        contribution = popularity * config.effective_popularity_scale()
        availability = AVAILABILITY_BONUS if result.available else 0.0
        local = LOCAL_BONUS if result.source == "local" else 0.0
        final = (text + contribution) * multiplier + availability + local

        return RelevanceBreakdown(
            text_match=text,
            popularity_input=popularity,
            popularity_contribution=contribution,
            platform_multiplier=multiplier,
            availability_bonus=availability,
            local_bonus=local,
            final=final,
            representative_platform=result.platform,
        )

    def score(
        self,
        result: SearchResult,
        query: str,
        candidates: list[SearchResult],
        config: RankingConfig | None = None,
    ) -> float:
        return self.breakdown(result, query, candidates, config).final
