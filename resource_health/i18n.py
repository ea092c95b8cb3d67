"""Localized status messages.

Summaries are stored with every locale; the API picks one per request.
"""

from __future__ import annotations

from resource_health.domain.catalog import DEFAULT_LOCALE
from resource_health.domain.models import HealthStatus

LocalizedString = dict[str, str]

STATUS_MESSAGES: dict[HealthStatus, LocalizedString] = {
    HealthStatus.UP: {
        "pt-BR": "Recurso operacional",
        "en-US": "Resource is healthy",
        "es-ES": "Recurso operativo",
    },
    HealthStatus.DEGRADED: {
        "pt-BR": "Recurso degradado",
        "en-US": "Resource degraded",
        "es-ES": "Recurso degradado",
    },
    HealthStatus.DOWN: {
        "pt-BR": "Recurso indisponível",
        "en-US": "Resource unavailable",
        "es-ES": "Recurso indisponible",
    },
}


def status_message(status: HealthStatus) -> LocalizedString:
    return dict(STATUS_MESSAGES.get(status, STATUS_MESSAGES[HealthStatus.DOWN]))


def pick_locale(
    locale: str | None,
    value: str | LocalizedString,
    default_locale: str = DEFAULT_LOCALE,
) -> str:
    """Resolve a localized value to a plain string."""
    if isinstance(value, str):
        return value
    chosen = value.get(locale or default_locale)
    if chosen:
        return chosen
    return value.get(default_locale) or next(iter(value.values()), "")


def parse_accept_language(header: str | None) -> str | None:
    """First language tag of an Accept-Language header, without q-weights."""
    if not header:
        return None
    first = header.split(",")[0].split(";")[0].strip()
    return first or None
