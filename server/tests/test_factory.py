"""Tests for wiring the search stack from settings."""

import logging

from songhub.core.config import Settings, validate_settings
from songhub.schemas.platform import TrackInfo
from songhub.schemas.search import SearchRequest
from songhub.services.search import build_search_coordinator
from songhub.services.search.factory import build_ranking_provider


def _settings(**overrides) -> Settings:
    return Settings(public_base_url="https://songhub.example", **overrides)


class TestBuildSearchCoordinator:
    def test_end_to_end(self, session_factory, fake_platform, make_song):
        make_song("Yesterday", "The Beatles", isrc="GBAYE6500524")
        spotify = fake_platform(
            "spotify",
            tracks=[
                TrackInfo(
                    platform="spotify",
                    external_id="1",
                    title="Yesterday",
                    artists=["The Beatles"],
                    isrc="GBAYE6500524",
                    url="https://open.spotify.com/track/1",
                    popularity=80,
                )
            ],
        )
        coordinator = build_search_coordinator(
            {"spotify": spotify}, session_factory=session_factory, settings=_settings()
        )
        try:
            response = coordinator.search(SearchRequest(query="yesterday"))
            assert coordinator.engine.enabled_sources() == ["local", "spotify"]
            assert coordinator.pool.wait_idle(timeout=10)
        finally:
            coordinator.close()

        assert response.total == 1
        group = response.results[0]
        # The stored song has no links yet, so the local row is a universal link
        assert group.platforms() == ["local", "spotify"]
        assert group.local_url == "https://songhub.example/s/GBAYE6500524"
        assert spotify.timeouts[0] == 10.0

    def test_ranking_config_path(self, tmp_path):
        path = tmp_path / "ranking.toml"
        path.write_text("tie_epsilon = 0.5\n")
        provider = build_ranking_provider(_settings(ranking_config_path=str(path)))
        assert provider.get().tie_epsilon == 0.5

    def test_missing_ranking_config_uses_defaults(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            provider = build_ranking_provider(
                _settings(ranking_config_path=str(tmp_path / "none.toml"))
            )
        assert provider.get().tie_epsilon == 2.5
        assert "Using default ranking config" in caplog.text


class TestSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SONGHUB_NEGATIVE_TTL_SECONDS", "30")
        assert Settings().negative_ttl_seconds == 30

    def test_postgres_url_uses_psycopg_driver(self):
        settings = _settings(database_url="postgres://u:p@db/songhub")
        assert settings.database_url_sync == "postgresql+psycopg://u:p@db/songhub"

    def test_validate_settings_warns(self, caplog):
        settings = _settings(negative_ttl_seconds=100, persistent_ttl_seconds=50)
        settings.memory_cache_capacity = 0
        with caplog.at_level(logging.WARNING):
            validate_settings(settings)
        assert "NEGATIVE_TTL_SECONDS" in caplog.text
        assert settings.memory_cache_capacity == 1
