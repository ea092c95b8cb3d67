"""Standard metric set per resource type, with localized descriptions.

The passive probe derives its conservative defaults from this table and the
API publishes it so policy authors know which metric names exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from resource_health.domain.models import ResourceType

DEFAULT_LOCALE = "pt-BR"
LOCALES = ("pt-BR", "en-US", "es-ES")


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    kind: str  # boolean | number | string | percentage | duration_ms | rate_per_min | count
    description: dict[str, str]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.kind, "description": dict(self.description)}


def _metric(name: str, kind: str, pt: str, en: str, es: str) -> MetricDefinition:
    return MetricDefinition(name, kind, {"pt-BR": pt, "en-US": en, "es-ES": es})


METRIC_CATALOG: dict[ResourceType, list[MetricDefinition]] = {
    ResourceType.DATABASE: [
        _metric("connection_ok", "boolean",
                "Conecta e executa uma query simples.",
                "Can connect and run a simple query or ping.",
                "Puede conectar y ejecutar una consulta simple."),
        _metric("latency_ms", "duration_ms",
                "Latência do ping ou da query simples.",
                "Latency of the ping or simple query.",
                "Latencia del ping o de la consulta simple."),
        _metric("active_connections", "count",
                "Conexões ativas no momento da checagem.",
                "Active connections at check time, when supported.",
                "Conexiones activas en el momento de la verificación."),
        _metric("replication_lag_ms", "duration_ms",
                "Lag de replicação, quando aplicável.",
                "Replication lag for replicas or clusters, when applicable.",
                "Retraso de replicación, cuando aplique."),
        _metric("lock_wait_ms", "duration_ms",
                "Tempo de espera em locks relevantes.",
                "Wait time on relevant locks, when available.",
                "Tiempo de espera en bloqueos relevantes."),
    ],
    ResourceType.CACHE_QUEUE: [
        _metric("ping_ok", "boolean",
                "Ping ou handshake básico com o recurso.",
                "Basic ping or handshake with the resource.",
                "Ping o handshake básico con el recurso."),
        _metric("latency_ms", "duration_ms",
                "Latência do ping ou operação mínima.",
                "Latency of the ping or minimal operation.",
                "Latencia del ping u operación mínima."),
        _metric("memory_usage_pct", "percentage",
                "Uso de memória, quando suportado.",
                "Memory usage, when supported.",
                "Uso de memoria, cuando se soporta."),
        _metric("queue_depth", "count",
                "Profundidade da fila ou backlog.",
                "Queue depth or backlog.",
                "Profundidad de la cola o backlog."),
        _metric("consumer_lag", "count",
                "Lag de consumidores, quando aplicável.",
                "Consumer lag, when applicable.",
                "Retraso de consumidores, cuando aplique."),
    ],
    ResourceType.HTTP_SERVICE: [
        _metric("status_code", "number",
                "Status HTTP retornado pelo endpoint de saúde.",
                "HTTP status returned by the health endpoint.",
                "Estado HTTP devuelto por el endpoint de salud."),
        _metric("response_time_ms", "duration_ms",
                "Tempo total de resposta do healthcheck.",
                "Total response time of the health check.",
                "Tiempo total de respuesta del healthcheck."),
        _metric("availability", "boolean",
                "Endpoint respondeu com status 2xx/3xx.",
                "Endpoint answered with a 2xx/3xx status.",
                "El endpoint respondió con estado 2xx/3xx."),
        _metric("prisma_connection_ok", "boolean",
                "Conexão do ORM com o banco ok.",
                "ORM connection to the database is ok.",
                "Conexión del ORM con la base de datos ok."),
        _metric("prisma_query_latency_ms_avg", "duration_ms",
                "Latência média das queries do ORM.",
                "Average ORM query latency over a short window.",
                "Latencia media de las consultas del ORM."),
        _metric("prisma_query_latency_ms_p95", "duration_ms",
                "Latência p95 das queries do ORM.",
                "p95 ORM query latency over a short window.",
                "Latencia p95 de las consultas del ORM."),
        _metric("prisma_error_rate_pct_5m", "percentage",
                "Taxa de erro do ORM em 5 minutos.",
                "ORM error rate over 5 minutes.",
                "Tasa de error del ORM en 5 minutos."),
        _metric("prisma_pool_exhausted", "boolean",
                "Heurística de esgotamento do pool.",
                "Heuristic for connection pool exhaustion.",
                "Heurística de agotamiento del pool."),
        _metric("prisma_last_error_code", "string",
                "Último código de erro do ORM.",
                "Last ORM error code seen.",
                "Último código de error del ORM."),
    ],
    ResourceType.LLM_PROVIDER: [
        _metric("availability", "boolean",
                "Resposta válida no teste sintético.",
                "Valid response to the synthetic request.",
                "Respuesta válida en la prueba sintética."),
        _metric("response_time_ms", "duration_ms",
                "Latência do teste sintético.",
                "Latency of the synthetic request.",
                "Latencia de la prueba sintética."),
        _metric("status_code", "number",
                "Status HTTP do teste sintético.",
                "HTTP status of the synthetic request.",
                "Estado HTTP de la prueba sintética."),
        _metric("rate_limit_remaining", "number",
                "Limite de requisições restante, via headers.",
                "Remaining rate limit, when exposed via headers.",
                "Límite de solicitudes restante, vía headers."),
    ],
    ResourceType.VECTOR_DB: [
        _metric("index_available", "boolean",
                "Índice disponível e operacional.",
                "Index is available and operational.",
                "Índice disponible y operativo."),
        _metric("query_latency_ms", "duration_ms",
                "Latência da query de teste.",
                "Latency of the synthetic query.",
                "Latencia de la consulta de prueba."),
        _metric("insert_latency_ms", "duration_ms",
                "Latência do insert de teste, quando permitido.",
                "Latency of the test insert, when allowed.",
                "Latencia del insert de prueba, cuando se permite."),
        _metric("collection_size", "count",
                "Tamanho da coleção, quando disponível.",
                "Collection size, when available.",
                "Tamaño de la colección, cuando disponible."),
    ],
}

RESOURCE_SUBTYPES: dict[ResourceType, tuple[str, ...]] = {
    ResourceType.DATABASE: ("postgres", "mongo"),
    ResourceType.CACHE_QUEUE: ("redis", "rabbitmq", "kafka"),
    ResourceType.HTTP_SERVICE: ("internal_api", "external_api", "backend"),
    ResourceType.LLM_PROVIDER: ("openai", "gemini", "anthropic", "local_vllm", "local_tgi"),
    ResourceType.VECTOR_DB: ("pgvector", "pinecone", "weaviate", "qdrant"),
}


def metrics_for(resource_type: ResourceType) -> list[MetricDefinition]:
    return METRIC_CATALOG.get(resource_type, [])


def catalog_to_dict() -> list[dict[str, Any]]:
    """Serialize the catalog for the API."""
    return [
        {
            "resourceType": rtype.value,
            "subtypes": list(RESOURCE_SUBTYPES.get(rtype, ())),
            "metrics": [m.to_dict() for m in metrics],
        }
        for rtype, metrics in METRIC_CATALOG.items()
    ]
