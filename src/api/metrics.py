from prometheus_client import Counter, Histogram, Gauge, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "gazette_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "gazette_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

ENTRIES_EXTRACTED_TOTAL = get_or_create_metric(
    "gazette_entries_extracted_total", "Total gazette entries extracted", Counter
)

TASKS_INGESTED_TOTAL = get_or_create_metric(
    "gazette_tasks_ingested_total", "Total tasks created by gazette ingestion", Counter
)

PERSISTENCE_FAILURES_TOTAL = get_or_create_metric(
    "gazette_persistence_failures_total", "Ingested tasks that failed to persist", Counter
)

TASKS_STORED = get_or_create_metric(
    "gazette_tasks_stored", "Tasks currently in the store", Gauge
)


def record_ingestion(report) -> None:
    ENTRIES_EXTRACTED_TOTAL.inc(report.extracted)
    TASKS_INGESTED_TOTAL.inc(report.new_entries)
    PERSISTENCE_FAILURES_TOTAL.inc(report.failed)
