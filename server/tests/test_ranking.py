"""Tests for deterministic flat and grouped ranking."""

import random

import pytest

from songhub.core.ranking import RankingConfig, RankingConfigProvider
from songhub.schemas.search import GroupedSearchResult, PlatformLink, SearchResult
from songhub.services.search.grouping import group_results
from songhub.services.search.ranking import Ranker, _score_order


def _result(
    platform: str = "spotify",
    title: str = "Song",
    artists: list[str] | None = None,
    album: str = "",
    popularity: int = 0,
    id: str | None = None,
    isrc: str = "",
) -> SearchResult:
    return SearchResult(
        id=id or f"{platform}-{title}",
        title=title,
        artists=artists if artists is not None else ["Artist"],
        album=album,
        platform=platform,
        popularity=popularity,
        isrc=isrc,
    )


def _group(
    title: str,
    artists: list[str] | None = None,
    album: str = "",
    popularity: int = 0,
    index: int = 0,
) -> GroupedSearchResult:
    return GroupedSearchResult(
        id=f"g-{title}-{index}",
        title=title,
        artists=artists if artists is not None else ["Artist"],
        album=album,
        popularity=popularity,
        original_index=index,
        platform_links=[PlatformLink(platform="spotify", url="u", available=True)],
    )


def _flat_ranker(epsilon: float = 2.5) -> Ranker:
    return Ranker(config_provider=RankingConfigProvider(RankingConfig(tie_epsilon=epsilon)))


class TestScoreOrder:
    def test_ties_within_epsilon_are_pairwise(self):
        # Near-ties chain without being transitive
        assert _score_order(10.0, 12.0, 2.5) == 0
        assert _score_order(12.0, 14.0, 2.5) == 0
        assert _score_order(14.0, 10.0, 2.5) == -1
        assert _score_order(10.0, 14.0, 2.5) == 1


class TestRankResults:
    def test_best_match_first(self):
        results = [
            _result(title="Something Else"),
            _result(title="Yesterday"),
        ]
        ranked = _flat_ranker().rank_results(results, "yesterday")
        assert ranked[0].title == "Yesterday"
        assert ranked[0].relevance_score > ranked[1].relevance_score

    def test_deterministic_across_input_orders(self):
        results = [
            _result(platform=p, title=t, popularity=pop)
            for p in ("spotify", "tidal", "apple_music")
            for t, pop in (("Alpha", 10), ("Beta", 10), ("Gamma", 20))
        ]
        expected = [r.id for r in _flat_ranker().rank_results(list(results), "song")]
        rng = random.Random(42)
        for _ in range(5):
            shuffled = [r.model_copy() for r in results]
            rng.shuffle(shuffled)
            assert [r.id for r in _flat_ranker().rank_results(shuffled, "song")] == expected

    @staticmethod
    def _near_tie() -> list[SearchResult]:
        # 115.0 vs 113.52: the available one scores higher, the other is more popular
        available = _result(id="available", title="Alpha", artists=["X"])
        popular = _result(id="popular", title="Alpha", artists=["Y"], popularity=4)
        popular.available = False
        return [available, popular]

    def test_tie_broken_by_popularity_within_epsilon(self):
        ranked = _flat_ranker().rank_results(self._near_tie(), "alpha")
        assert ranked[0].relevance_score < ranked[1].relevance_score
        assert ranked[0].id == "popular"

    def test_outside_epsilon_score_wins(self):
        ranked = _flat_ranker(epsilon=0.5).rank_results(self._near_tie(), "alpha")
        assert ranked[0].id == "available"

    def test_tie_broken_by_platform_weight(self):
        config = RankingConfig(platform_weights={"spotify": 1.0, "tidal": 1.0, "local": 1.0})
        ranker = Ranker(config_provider=RankingConfigProvider(config))
        results = [_result(platform="tidal"), _result(platform="spotify")]
        ranked = ranker.rank_results(results, "zzz")
        # Equal weights fall through to the id
        assert [r.platform for r in ranked] == ["spotify", "tidal"]

        weighted = Ranker(
            config_provider=RankingConfigProvider(
                RankingConfig(tie_epsilon=100, platform_weights={"tidal": 1.5, "spotify": 1.0})
            )
        )
        results = [_result(platform="spotify"), _result(platform="tidal")]
        ranked = weighted.rank_results(results, "zzz")
        assert ranked[0].platform == "tidal"

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ({"title": "Alpha"}, {"title": "beta"}),
            ({"artists": ["Abba"]}, {"artists": ["bee gees"]}),
            ({"album": "A"}, {"album": "b"}),
            ({"id": "spotify-1"}, {"id": "spotify-2"}),
        ],
    )
    def test_lexicographic_tie_breaks(self, a, b):
        """Equal scores fall through title, first artist, album, then id."""
        ranker = _flat_ranker(epsilon=1000)
        first = _result(**a)
        second = _result(**b)
        ranked = ranker.rank_results([second, first], "zzz")
        assert ranked[0] is first
        assert ranked[1] is second

    def test_input_position_is_last_resort(self):
        ranker = _flat_ranker()
        results = [_result(id="same"), _result(id="same")]
        results[0].url = "first"
        results[1].url = "second"
        assert [r.url for r in ranker.rank_results(results, "zzz")] == ["first", "second"]

    def test_epsilon_non_positive_falls_back(self):
        config = RankingConfig(tie_epsilon=-1)
        assert config.effective_epsilon() == 2.5


class TestRankGroups:
    def test_more_popular_group_first(self):
        groups = [_group("Alpha", popularity=10, index=0), _group("Alpha", popularity=90, index=1)]
        ranked = Ranker().rank_groups(groups, "zzz", [])
        assert [g.original_index for g in ranked] == [1, 0]

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ({"title": "Alpha"}, {"title": "beta"}),
            ({"title": "T", "artists": ["abba"]}, {"title": "T", "artists": ["Bee Gees"]}),
            ({"title": "T", "album": "a"}, {"title": "T", "album": "B"}),
        ],
    )
    def test_lexicographic_tie_breaks(self, a, b):
        first = _group(index=1, **a)
        second = _group(index=0, **b)
        ranked = Ranker().rank_groups([second, first], "zzz", [])
        assert ranked[0] is first

    def test_original_index_last(self):
        groups = [_group("T", index=3), _group("T", index=1)]
        ranked = Ranker().rank_groups(groups, "zzz", [])
        assert [g.original_index for g in ranked] == [1, 3]

    def test_debug_breakdown_attached(self):
        candidates = [
            SearchResult(
                id="s", title="Song", artists=["A"], platform="spotify", isrc="X1", popularity=90
            ),
            SearchResult(
                id="t", title="Song", artists=["A"], platform="tidal", isrc="X1", popularity=60
            ),
        ]
        groups = group_results(candidates)
        ranked = Ranker().rank_groups(groups, "song", candidates, include_debug=True)
        debug = ranked[0].debug
        assert debug is not None
        assert debug.representative_platform == "spotify"
        assert debug.platform_popularity == {"spotify": 90, "tidal": 60}
        assert debug.aggregate_popularity == 76
        assert debug.final == ranked[0].relevance_score
        assert ranked[0].representative_platform == "spotify"

    def test_no_debug_by_default(self):
        groups = [_group("T")]
        assert Ranker().rank_groups(groups, "t", [])[0].debug is None

    def test_config_swap_applies_to_next_pass(self):
        provider = RankingConfigProvider()
        ranker = Ranker(config_provider=provider)
        results = [_result(platform="spotify", title="X"), _result(platform="tidal", title="X")]
        assert ranker.rank_results([r.model_copy() for r in results], "x")[0].platform == "spotify"

        provider.swap(RankingConfig(platform_weights={"tidal": 3.0}))
        assert ranker.rank_results([r.model_copy() for r in results], "x")[0].platform == "tidal"
