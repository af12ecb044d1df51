"""Tests for cross-platform grouping and dedup."""

from songhub.schemas.search import SearchResult
from songhub.services.search.grouping import (
    choose_representative,
    generate_song_key,
    group_results,
)


def _result(
    platform: str,
    title: str = "Bohemian Rhapsody",
    artists: list[str] | None = None,
    isrc: str = "",
    popularity: int = 0,
    duration_ms: int = 0,
    album: str = "",
    url: str | None = None,
    available: bool = True,
    source: str = "platform",
    image_url: str = "",
) -> SearchResult:
    return SearchResult(
        id=f"{platform}-{title}",
        title=title,
        artists=artists if artists is not None else ["Queen"],
        platform=platform,
        isrc=isrc,
        popularity=popularity,
        duration_ms=duration_ms,
        album=album,
        url=f"https://{platform}.example/t" if url is None else url,
        available=available,
        source=source,
        image_url=image_url,
    )


class TestGenerateSongKey:
    def test_isrc_key(self):
        assert generate_song_key(_result("spotify", isrc="GBUM71029604")) == "isrc:GBUM71029604"

    def test_isrc_key_ignores_metadata(self):
        """Same ISRC with different titles/durations still shares a key."""
        a = _result("spotify", title="Song", isrc="X1", duration_ms=1000)
        b = _result("tidal", title="Song (Remastered)", isrc="X1", duration_ms=999999)
        assert generate_song_key(a) == generate_song_key(b)

    def test_heuristic_key(self):
        key = generate_song_key(_result("tidal", title="Don't Stop Me Now!", duration_ms=209000))
        assert key == "song:dont stop me now:queen:dur105"

    def test_unknown_duration_bucket_zero(self):
        assert generate_song_key(_result("tidal")).endswith(":dur0")

    def test_no_artist(self):
        assert generate_song_key(_result("tidal", artists=[])) == "song:bohemian rhapsody::dur0"

    def test_duration_buckets(self):
        """180000 and 184000 land in adjacent buckets; 210000 is far away."""
        keys = [
            generate_song_key(_result("tidal", duration_ms=ms)) for ms in (180000, 184000, 210000)
        ]
        assert keys == [
            "song:bohemian rhapsody:queen:dur90",
            "song:bohemian rhapsody:queen:dur92",
            "song:bohemian rhapsody:queen:dur105",
        ]

    def test_half_up_rounding(self):
        assert generate_song_key(_result("tidal", duration_ms=181000)).endswith(":dur91")
        assert generate_song_key(_result("tidal", duration_ms=180999)).endswith(":dur90")


class TestGroupResults:
    def test_groups_by_isrc(self):
        results = [
            _result("spotify", isrc="X1", popularity=80),
            _result("apple_music", isrc="X1"),
            _result("tidal", isrc="X2", popularity=10),
        ]
        groups = group_results(results)
        assert len(groups) == 2
        assert groups[0].platforms() == ["spotify", "apple_music"]
        assert groups[0].id == "result-X1"
        assert groups[1].id == "result-X2"

    def test_duration_bucket_separation(self):
        results = [
            _result("spotify", duration_ms=180000),
            _result("tidal", duration_ms=184000),
            _result("apple_music", duration_ms=210000),
        ]
        groups = group_results(results)
        assert len(groups) == 3

    def test_same_bucket_merges_without_isrc(self):
        results = [
            _result("spotify", duration_ms=180400, album="Single"),
            _result("tidal", duration_ms=179600, album="A Night at the Opera"),
        ]
        groups = group_results(results)
        assert len(groups) == 1
        assert groups[0].platforms() == ["spotify", "tidal"]
        assert groups[0].album == "A Night at the Opera"

    def test_no_duplicate_platform_links(self):
        results = [
            _result("spotify", isrc="X1", url="", available=False),
            _result("spotify", isrc="X1", url="https://open.spotify.com/track/1"),
            _result("spotify", isrc="X1", url="https://other", available=False),
        ]
        groups = group_results(results)
        links = groups[0].platform_links
        assert len(links) == 1
        assert links[0].url == "https://open.spotify.com/track/1"
        assert links[0].available is True

    def test_local_contribution_marks_group(self):
        results = [
            _result("spotify", isrc="X1"),
            _result("tidal", isrc="X1", source="local", url="https://tidal.example/local"),
        ]
        group = group_results(results)[0]
        assert group.has_local_link is True
        assert group.local_url == "https://tidal.example/local"

    def test_adopts_missing_metadata(self):
        results = [
            _result("spotify", isrc="X1"),
            _result("tidal", isrc="X1", duration_ms=354000, image_url="https://img"),
        ]
        group = group_results(results)[0]
        assert group.duration_ms == 354000
        assert group.image_url == "https://img"

    def test_isrc_popularity_is_weighted_aggregate(self):
        results = [
            _result("spotify", isrc="X1", popularity=90),
            _result("tidal", isrc="X1", popularity=60),
            _result("apple_music", isrc="X1", popularity=100),
        ]
        # (90*1.0 + 60*0.8) / 1.8 = 76.67 -> 76; apple_music has weight 0
        assert group_results(results)[0].popularity == 76

    def test_popularity_without_isrc_is_max(self):
        results = [
            _result("spotify", popularity=30),
            _result("tidal", popularity=70),
        ]
        assert group_results(results)[0].popularity == 70

    def test_popularity_bounded(self):
        results = [_result(p, isrc="X1", popularity=100) for p in ("spotify", "tidal")]
        assert 0 <= group_results(results)[0].popularity <= 100

    def test_group_ids_are_deterministic(self):
        results = [_result("tidal", title="No ISRC Song", duration_ms=200000)]
        first = group_results(results)[0].id
        second = group_results([r.model_copy() for r in results])[0].id
        assert first == second
        assert first.startswith("result-song:no isrc song:queen:dur100-")

    def test_original_index_follows_first_appearance(self):
        results = [
            _result("spotify", title="B", isrc="B1"),
            _result("spotify", title="A", isrc="A1"),
            _result("tidal", title="B", isrc="B1"),
        ]
        groups = group_results(results)
        assert [(g.title, g.original_index) for g in groups] == [("B", 0), ("A", 1)]


class TestChooseRepresentative:
    def test_highest_platform_popularity_wins(self):
        results = [
            _result("tidal", isrc="X1", popularity=40),
            _result("spotify", isrc="X1", popularity=85),
        ]
        group = group_results(results)[0]
        rep = choose_representative(group, results)
        assert rep.platform == "spotify"
        assert rep.popularity == 85
        assert rep.url == "https://spotify.example/t"
        assert rep.available is True
        assert rep.source == "platform"

    def test_first_wins_popularity_ties(self):
        results = [
            _result("tidal", isrc="X1", popularity=50),
            _result("spotify", isrc="X1", popularity=50),
        ]
        group = group_results(results)[0]
        assert choose_representative(group, results).platform == "tidal"

    def test_without_isrc_uses_first_link(self):
        results = [_result("apple_music"), _result("spotify", popularity=99)]
        group = group_results(results)[0]
        rep = choose_representative(group, results)
        assert rep.platform == "apple_music"
        assert rep.popularity == 99

    def test_local_group_reports_local_source(self):
        results = [_result("spotify", isrc="X1", source="local")]
        group = group_results(results)[0]
        assert choose_representative(group, results).source == "local"
