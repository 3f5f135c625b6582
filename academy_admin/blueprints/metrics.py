"""
Prometheus metrics blueprint.

Exposes /metrics with access-gate decisions, impersonation starts and
per-endpoint request timings. Restrict it to the monitoring network.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share counters through PROMETHEUS_MULTIPROC_DIR
if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = _metric_registry = REGISTRY

access_decisions_total = Counter(
    'access_decisions_total',
    'Access gate decisions by kind',
    ['kind'],
    registry=_metric_registry
)

impersonation_sessions_started_total = Counter(
    'impersonation_sessions_started_total',
    'Impersonation sessions started or resumed',
    registry=_metric_registry
)

request_duration_seconds = Histogram(
    'academy_request_duration_seconds',
    'Request latency by blueprint and status',
    ['blueprint', 'http_status'],
    registry=_metric_registry,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
)


def setup_metrics_instrumentation(app):
    """Time every request, labelled by blueprint so gated and admin traffic read apart."""

    @app.before_request
    def start_request_timer():
        g._request_started_at = time.perf_counter()

    @app.after_request
    def observe_request(response):
        started_at = g.pop('_request_started_at', None)
        if started_at is not None:
            request_duration_seconds.labels(
                blueprint=request.blueprint or 'none',
                http_status=response.status_code,
            ).observe(time.perf_counter() - started_at)
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus scrape endpoint. Not authenticated."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
