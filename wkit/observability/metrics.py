"""
Prometheus metrics for wkit components.
"""
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator
from wkit.config import settings


# Outbound HTTP
http_client_requests_total = Counter(
    "http_client_requests_total",
    "Total number of outbound request attempts by outcome",
    ["method", "outcome"],
)

http_client_retries_total = Counter(
    "http_client_retries_total",
    "Total number of outbound request retries after a retryable error",
    ["method"],
)

# Token cache
token_evictions_total = Counter(
    "token_evictions_total",
    "Total number of expired tokens removed from the token store",
    ["reason"],
)


def setup_metrics(app, enabled: bool = None):
    """
    Setup Prometheus metrics for FastAPI app.
    Only enables if METRICS_ENABLED is true (or enabled=True is passed).

    Args:
        app: FastAPI application instance
        enabled: override for settings.METRICS_ENABLED
    """
    if enabled is None:
        enabled = settings.METRICS_ENABLED

    if not enabled:
        return None

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["observability"])
    return instrumentator
