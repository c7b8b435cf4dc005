import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, REGISTRY

from calendar_ai.errors import CalendarAIError


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "calendar_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "calendar_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

TASKS_EXTRACTED_TOTAL = get_or_create_metric(
    "calendar_tasks_extracted_total", "Total tasks extracted from free text", Counter
)

TASKS_DROPPED_TOTAL = get_or_create_metric(
    "calendar_tasks_dropped_total", "Extracted tasks dropped by validation", Counter
)

TASKS_CREATED_TOTAL = get_or_create_metric(
    "calendar_tasks_created_total", "Tasks created on the remote calendar", Counter
)

TASK_CREATE_FAILURES_TOTAL = get_or_create_metric(
    "calendar_task_create_failures_total", "Task creations that failed", Counter
)

TOKEN_REFRESH_TOTAL = get_or_create_metric(
    "calendar_token_refresh_total",
    "Access token refresh attempts",
    Counter,
    labelnames=["outcome"],
)


@contextmanager
def track_request(endpoint: str):
    """Count the request and observe its latency, labelled with the outcome."""
    start = time.time()
    status = "ok"
    try:
        yield
    except CalendarAIError as e:
        status = str(e.status_code)
        raise
    except Exception:
        status = "error"
        raise
    finally:
        REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
        REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)
