"""Tests for localized messages and the metric catalog."""

from __future__ import annotations

from resource_health.domain.catalog import LOCALES, METRIC_CATALOG, catalog_to_dict, metrics_for
from resource_health.domain.models import HealthStatus, ResourceType
from resource_health.i18n import parse_accept_language, pick_locale, status_message


class TestLocalization:
    def test_every_status_has_every_locale(self) -> None:
        for status in HealthStatus:
            assert set(status_message(status)) == set(LOCALES)

    def test_pick_locale(self) -> None:
        msg = {"pt-BR": "olá", "en-US": "hello"}
        assert pick_locale("en-US", msg) == "hello"
        assert pick_locale("de-DE", msg) == "olá"
        assert pick_locale(None, msg, default_locale="en-US") == "hello"
        assert pick_locale("en-US", {"es-ES": "hola"}) == "hola"
        assert pick_locale("en-US", "plain") == "plain"

    def test_parse_accept_language(self) -> None:
        assert parse_accept_language("es-ES;q=0.9, en") == "es-ES"
        assert parse_accept_language("") is None
        assert parse_accept_language(None) is None


class TestMetricCatalog:
    def test_covers_every_type(self) -> None:
        assert set(METRIC_CATALOG) == set(ResourceType)
        assert len(catalog_to_dict()) == len(ResourceType)

    def test_http_service_exposes_dependency_metrics(self) -> None:
        names = [m.name for m in metrics_for(ResourceType.HTTP_SERVICE)]
        assert names[:3] == ["status_code", "response_time_ms", "availability"]
        assert "prisma_pool_exhausted" in names
