"""Deterministic ordering of flat and grouped search results.

Scores closer than the configured epsilon are treated as ties and resolved
by a fixed cascade, so the final order never depends on completion order of
the sources or on dict iteration.
"""

from __future__ import annotations

import logging
from functools import cmp_to_key

from songhub.core.ranking import RankingConfigProvider
from songhub.schemas.search import GroupedSearchResult, SearchResult
from songhub.services.search.grouping import (
    choose_representative,
    platform_popularity,
)
from songhub.services.search.scorer import RelevanceScorer, calculate_aggregate_popularity

logger = logging.getLogger(__name__)


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _first_artist(artists: list[str]) -> str:
    return artists[0].lower() if artists else ""


def _score_order(a: float, b: float, epsilon: float) -> int:
    """-1/1 when the scores clearly differ, 0 when they tie within epsilon."""
    # Not transitive: with epsilon 2.5, 10 ~ 12 and 12 ~ 14 but 10 < 14. Chains
    # of near-ties can sort differently depending on input order.
    if a == b or abs(a - b) < epsilon:
        return 0
    return -1 if a > b else 1


class Ranker:
    def __init__(
        self,
        scorer: RelevanceScorer | None = None,
        config_provider: RankingConfigProvider | None = None,
    ) -> None:
        self.config_provider = config_provider or RankingConfigProvider()
        self.scorer = scorer or RelevanceScorer(self.config_provider)

    def rank_results(self, results: list[SearchResult], query: str) -> list[SearchResult]:
        """Score flat results and return them best first.

        Ties: popularity desc, platform weight desc, then title, first artist,
        album, id and input position ascending.
        """
        config = self.config_provider.get()
        epsilon = config.effective_epsilon()

        for result in results:
            result.relevance_score = self.scorer.score(result, query, results, config)
        positions = {id(r): i for i, r in enumerate(results)}

        def compare(a: SearchResult, b: SearchResult) -> int:
            order = _score_order(a.relevance_score, b.relevance_score, epsilon)
            if order:
                return order
            return (
                _cmp(b.popularity, a.popularity)
                or _cmp(config.platform_weight(b.platform), config.platform_weight(a.platform))
                or _cmp(a.title.lower(), b.title.lower())
                or _cmp(_first_artist(a.artists), _first_artist(b.artists))
                or _cmp(a.album.lower(), b.album.lower())
                or _cmp(a.id, b.id)
                or _cmp(positions[id(a)], positions[id(b)])
            )

        return sorted(results, key=cmp_to_key(compare))

    def rank_groups(
        self,
        groups: list[GroupedSearchResult],
        query: str,
        candidates: list[SearchResult],
        include_debug: bool = False,
    ) -> list[GroupedSearchResult]:
        """Score each group through its representative and return best first.

        Ties: aggregate popularity desc, then title, first artist, album and
        original index ascending.
        """
        config = self.config_provider.get()
        epsilon = config.effective_epsilon()

        representatives = [choose_representative(group, candidates) for group in groups]
        for group, rep in zip(groups, representatives, strict=True):
            group.representative_platform = rep.platform
            if include_debug:
                breakdown = self.scorer.breakdown(rep, query, representatives, config)
                if group.isrc:
                    breakdown.platform_popularity = platform_popularity(candidates, group.isrc)
                    breakdown.aggregate_popularity = calculate_aggregate_popularity(
                        candidates, group.isrc, config.popularity_platform_weights
                    )
                group.debug = breakdown
                group.relevance_score = breakdown.final
            else:
                group.relevance_score = self.scorer.score(rep, query, representatives, config)

        def compare(a: GroupedSearchResult, b: GroupedSearchResult) -> int:
            order = _score_order(a.relevance_score, b.relevance_score, epsilon)
            if order:
                return order
            return (
                _cmp(b.popularity, a.popularity)
                or _cmp(a.title.lower(), b.title.lower())
                or _cmp(_first_artist(a.artists), _first_artist(b.artists))
                or _cmp(a.album.lower(), b.album.lower())
                or _cmp(a.original_index, b.original_index)
            )

        ranked = sorted(groups, key=cmp_to_key(compare))
        logger.debug("Ranked %d groups for %r", len(ranked), query)
        return ranked
