"""Shared FastAPI wiring: request metrics middleware and probe endpoints."""

from time import perf_counter

from fastapi import FastAPI, Request

from paygate.common.config import settings
from paygate.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response


def install_request_metrics(app: FastAPI) -> None:
    """Record request count and latency for every HTTP call."""

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()


def install_probes(app: FastAPI) -> None:
    """Attach `/health` and `/metrics` endpoints."""

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()
