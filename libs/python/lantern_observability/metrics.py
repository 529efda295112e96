"""Prometheus metrics helpers and middleware."""

from __future__ import annotations

from time import perf_counter
from typing import TYPE_CHECKING, Optional

from fastapi import FastAPI, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from lantern_providers.base import ProviderResponse


_HTTP_REQUESTS = Counter(
    "lantern_http_requests_total",
    "HTTP requests handled, by route and status",
    labelnames=("service", "method", "route", "status"),
)

_HTTP_LATENCY = Histogram(
    "lantern_http_request_duration_seconds",
    "HTTP request latency",
    labelnames=("service", "method", "route"),
)

_STAGE_DURATION = Histogram(
    "lantern_stage_duration_seconds",
    "Duration of generation, auxiliary and save stages",
    labelnames=("service", "stage"),
    buckets=(0.05, 0.25, 1, 5, 15, 30, 60, 120, 300, 600),
)

_STAGE_RUNS = Counter(
    "lantern_stage_runs_total",
    "Stage executions by outcome",
    labelnames=("service", "stage", "status"),
)

_PIPELINE_EVENTS = Counter(
    "lantern_pipeline_events_total",
    "Pipeline callbacks received by the orchestrator",
    labelnames=("service", "kind"),
)

_LLM_TOKENS = Counter(
    "lantern_llm_tokens_total",
    "Token usage by provider and stage",
    labelnames=("service", "stage", "provider", "token_type"),
)

_LLM_LATENCY = Histogram(
    "lantern_llm_latency_seconds",
    "Latency of LLM provider calls",
    labelnames=("service", "stage", "provider"),
)

_STARTED_SERVERS: set[tuple[str, int]] = set()


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count and time every request passing through a FastAPI app."""

    def __init__(self, app: FastAPI, service_name: str) -> None:
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start = perf_counter()
        response = await call_next(request)
        elapsed = perf_counter() - start

        route = request.scope.get("route")
        route_template = getattr(route, "path", None) or request.url.path

        _HTTP_REQUESTS.labels(
            self.service_name, request.method, route_template, str(response.status_code)
        ).inc()
        _HTTP_LATENCY.labels(self.service_name, request.method, route_template).observe(elapsed)
        return response


def setup_fastapi_metrics(app: FastAPI, service_name: str, endpoint: str = "/metrics") -> None:
    """Install the middleware and expose ``endpoint`` for scraping."""

    if getattr(app.state, "metrics_configured", False):
        return

    app.add_middleware(PrometheusMiddleware, service_name=service_name)

    @app.get(endpoint, include_in_schema=False)
    async def _metrics_endpoint() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.state.metrics_configured = True


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> None:
    """Expose metrics on a standalone HTTP server (once per address)."""

    key = (addr, port)
    if key in _STARTED_SERVERS:
        return
    start_http_server(port, addr=addr)
    _STARTED_SERVERS.add(key)


def observe_stage_duration(
    stage: str,
    duration_seconds: float,
    *,
    service_name: str,
    status: str = "success",
) -> None:
    _STAGE_DURATION.labels(service_name, stage).observe(max(duration_seconds, 0.0))
    _STAGE_RUNS.labels(service_name, stage, status).inc()


def observe_pipeline_event(kind: str, *, service_name: str) -> None:
    _PIPELINE_EVENTS.labels(service_name, kind).inc()


def observe_provider_response(
    *,
    stage: str,
    provider: str,
    service_name: str,
    response: Optional["ProviderResponse"],
) -> None:
    """Record token counts and latency reported by a provider response."""

    if response is None:
        return

    for token_type, count in (
        ("prompt", response.prompt_tokens),
        ("completion", response.completion_tokens),
    ):
        if isinstance(count, (int, float)) and count > 0:
            _LLM_TOKENS.labels(service_name, stage, provider, token_type).inc(count)

    if isinstance(response.latency_ms, (int, float)) and response.latency_ms >= 0:
        _LLM_LATENCY.labels(service_name, stage, provider).observe(response.latency_ms / 1000)
