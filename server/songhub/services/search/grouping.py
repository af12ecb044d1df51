"""Group flat per-source results into one entry per song.

Results with an ISRC group by ISRC, which keeps clean/explicit versions apart.
Without one, normalized title + primary artist + a 2-second duration bucket
combine platforms even when album strings differ (single vs album,
remasters) while keeping live edits and remixes separate.
"""

from __future__ import annotations

import hashlib

from songhub.schemas.search import GroupedSearchResult, PlatformLink, SearchResult
from songhub.services.search.local_source import LOCAL
from songhub.services.search.scorer import calculate_aggregate_popularity
from songhub.services.track_normalizer import normalize_key_text


def generate_song_key(result: SearchResult) -> str:
    if result.isrc:
        return f"isrc:{result.isrc}"

    title = normalize_key_text(result.title)
    artist = normalize_key_text(result.primary_artist)
    bucket = (result.duration_ms + 1000) // 2000 if result.duration_ms > 0 else 0
    return f"song:{title}:{artist}:dur{bucket}"


def generate_group_id(result: SearchResult, key: str) -> str:
    if result.isrc:
        return f"result-{result.isrc}"
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]
    return f"result-{key}-{digest}"


def _new_group(result: SearchResult, key: str, index: int) -> GroupedSearchResult:
    is_local = result.source == LOCAL
    return GroupedSearchResult(
        id=generate_group_id(result, key),
        title=result.title,
        artists=list(result.artists),
        album=result.album,
        isrc=result.isrc,
        duration_ms=result.duration_ms,
        release_date=result.release_date,
        image_url=result.image_url,
        popularity=result.popularity,
        explicit=result.explicit,
        platform_links=[
            PlatformLink(
                platform=result.platform,
                url=result.url,
                available=result.available,
                source=result.source,
            )
        ],
        has_local_link=is_local,
        local_url=result.url if is_local else "",
        original_index=index,
    )


def _merge_into(group: GroupedSearchResult, result: SearchResult) -> None:
    link = group.get_link(result.platform)
    if link is None:
        group.platform_links.append(
            PlatformLink(
                platform=result.platform,
                url=result.url,
                available=result.available,
                source=result.source,
            )
        )
    else:
        if not link.url and result.url:
            link.url = result.url
        if not link.available and result.available:
            link.available = True

    if result.popularity > group.popularity:
        group.popularity = result.popularity
    if len(result.album) > len(group.album):
        group.album = result.album
    if result.image_url and not group.image_url:
        group.image_url = result.image_url
    if result.duration_ms and not group.duration_ms:
        group.duration_ms = result.duration_ms
    if result.release_date and not group.release_date:
        group.release_date = result.release_date

    if result.source == LOCAL:
        group.has_local_link = True
        group.local_url = result.url


def group_results(
    results: list[SearchResult],
    popularity_weights: dict[str, float] | None = None,
) -> list[GroupedSearchResult]:
    """Merge flat results into groups, in order of first appearance.

    Each group keeps at most one link per platform. Groups with an ISRC get
    the weighted cross-platform popularity for that ISRC; others keep the
    highest popularity among their members.
    """
    groups: dict[str, GroupedSearchResult] = {}
    for result in results:
        key = generate_song_key(result)
        group = groups.get(key)
        if group is None:
            groups[key] = _new_group(result, key, len(groups))
        else:
            _merge_into(group, result)

    grouped = list(groups.values())
    for group in grouped:
        if group.isrc:
            group.popularity = calculate_aggregate_popularity(
                results, group.isrc, popularity_weights
            )
    return grouped


def platform_popularity(results: list[SearchResult], isrc: str) -> dict[str, int]:
    """Per-platform popularity seen for an ISRC (last positive value wins)."""
    popularity: dict[str, int] = {}
    if not isrc:
        return popularity
    for result in results:
        if result.isrc == isrc and result.popularity > 0:
            popularity[result.platform] = result.popularity
    return popularity


def choose_representative_platform(group: GroupedSearchResult, results: list[SearchResult]) -> str:
    if group.isrc:
        best_platform = ""
        best_popularity = -1
        for result in results:
            if result.isrc == group.isrc and result.popularity > best_popularity:
                best_popularity = result.popularity
                best_platform = result.platform
        if best_platform:
            return best_platform
    if group.platform_links:
        return group.platform_links[0].platform
    return ""


def choose_representative(group: GroupedSearchResult, results: list[SearchResult]) -> SearchResult:
    """Flat result that stands in for the group when scoring.

    Carries the group's metadata with the representative platform's URL and,
    when known, that platform's own popularity for the ISRC.
    """
    platform = choose_representative_platform(group, results)
    link = group.get_link(platform)
    if (link is None or not link.url) and group.platform_links:
        link = group.platform_links[0]
        platform = link.platform

    popularity = group.popularity
    if group.isrc:
        for result in results:
            if result.isrc == group.isrc and result.platform == platform and result.popularity > 0:
                popularity = result.popularity
                break

    return SearchResult(
        id=group.id,
        title=group.title,
        artists=list(group.artists),
        album=group.album,
        platform=platform,
        url=link.url if link else "",
        image_url=group.image_url,
        popularity=popularity,
        duration_ms=group.duration_ms,
        release_date=group.release_date,
        isrc=group.isrc,
        explicit=group.explicit,
        available=True,
        source=LOCAL if group.has_local_link else "platform",
    )
