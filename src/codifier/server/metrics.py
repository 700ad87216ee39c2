"""Prometheus text exposition for the Codifier server.

No prometheus_client dependency; the format is small enough to render by
hand. One ``RequestMetrics`` instance belongs to each application.

Series:
- codifier_http_requests_total{method,route,status}
- codifier_http_request_duration_seconds{method,route} (histogram)
- codifier_http_requests_in_flight
- codifier_stream_sessions_active
"""

from __future__ import annotations

import bisect
import threading
import time
from collections import Counter
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

# Upper bounds in seconds; +Inf is implicit
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

ROUTES = frozenset({"/health", "/rpc", "/stream", "/stream-messages"})

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def route_label(path: str) -> str:
    """Fold request paths into a bounded label set."""
    if path in ROUTES:
        return path
    if path.startswith("/.well-known/"):
        return "/.well-known"
    return "other"


class LatencyHistogram:
    """Per-bucket counts; cumulated only when rendered."""

    def __init__(self) -> None:
        self.counts = [0] * (len(LATENCY_BUCKETS) + 1)
        self.total = 0.0

    def observe(self, seconds: float) -> None:
        self.counts[bisect.bisect_left(LATENCY_BUCKETS, seconds)] += 1
        self.total += seconds

    @property
    def count(self) -> int:
        return sum(self.counts)

    def cumulative(self) -> list[tuple[str, int]]:
        running = 0
        pairs = []
        for bound, n in zip((*map(str, LATENCY_BUCKETS), "+Inf"), self.counts):
            running += n
            pairs.append((bound, running))
        return pairs


class RequestMetrics:
    """Thread-safe request counters, latency histograms and in-flight gauge."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: Counter[tuple[str, str, int]] = Counter()
        self._latency: dict[tuple[str, str], LatencyHistogram] = {}
        self._in_flight = 0

    def started(self) -> None:
        with self._lock:
            self._in_flight += 1

    def finished(self, method: str, route: str, status: int, seconds: float) -> None:
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
            self._requests[(method, route, status)] += 1
            self._latency.setdefault((method, route), LatencyHistogram()).observe(seconds)

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def request_count(self, method: str, route: str, status: int) -> int:
        with self._lock:
            return self._requests[(method, route, status)]

    def render(self, stream_sessions: int = 0) -> str:
        out = [
            "# HELP codifier_http_requests_total HTTP requests by route and status",
            "# TYPE codifier_http_requests_total counter",
        ]
        with self._lock:
            for (method, route, status), n in sorted(self._requests.items()):
                out.append(f'codifier_http_requests_total{{method="{method}",route="{route}",status="{status}"}} {n}')

            out += [
                "# HELP codifier_http_request_duration_seconds HTTP request latency",
                "# TYPE codifier_http_request_duration_seconds histogram",
            ]
            for (method, route), hist in sorted(self._latency.items()):
                labels = f'method="{method}",route="{route}"'
                for bound, n in hist.cumulative():
                    out.append(f'codifier_http_request_duration_seconds_bucket{{{labels},le="{bound}"}} {n}')
                out.append(f"codifier_http_request_duration_seconds_sum{{{labels}}} {hist.total:.6f}")
                out.append(f"codifier_http_request_duration_seconds_count{{{labels}}} {hist.count}")

            in_flight = self._in_flight

        out += [
            "# HELP codifier_http_requests_in_flight Requests currently being served",
            "# TYPE codifier_http_requests_in_flight gauge",
            f"codifier_http_requests_in_flight {in_flight}",
            "# HELP codifier_stream_sessions_active Open legacy stream sessions",
            "# TYPE codifier_stream_sessions_active gauge",
            f"codifier_stream_sessions_active {stream_sessions}",
        ]
        return "\n".join(out) + "\n"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Time every request except scrapes of ``/metrics`` itself."""

    def __init__(self, app: ASGIApp, metrics: RequestMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        route = route_label(request.url.path)
        status = 500
        self.metrics.started()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            self.metrics.finished(request.method, route, status, time.perf_counter() - start)


async def metrics_endpoint(request: Request) -> PlainTextResponse:
    state = request.app.state
    return PlainTextResponse(state.metrics.render(stream_sessions=len(state.registry)), media_type=CONTENT_TYPE)
