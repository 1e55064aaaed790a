from prometheus_client import REGISTRY, Counter, Histogram, write_to_textfile

# outcome: succeeded, failed, missing_tag, cancelled
PARTS = Counter(
    "multiput_parts_total",
    "Part uploads by outcome",
    ["outcome"],
)

PART_BYTES = Counter(
    "multiput_part_bytes_total",
    "Bytes acknowledged by the store across all uploaded parts",
)

PART_LATENCY = Histogram(
    "multiput_part_duration_seconds",
    "Wall time of a single part upload in seconds",
)

# outcome: completed, aborted, orphaned, single_shot
SESSIONS = Counter(
    "multiput_sessions_total",
    "Finished uploads by outcome",
    ["outcome"],
)


def write_metrics(path: str) -> None:
    """Dump the default registry in the node-exporter textfile format."""
    write_to_textfile(path, REGISTRY)
