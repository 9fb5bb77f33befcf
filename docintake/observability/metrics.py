"""
Prometheus metrics for the document intake service.
"""

from prometheus_client import Counter, Histogram, Gauge


# ── Documents ────────────────────────────────────────────────
documents_uploaded_total = Counter(
    "documents_uploaded_total",
    "Total documents uploaded",
    ["document_type"],
)

documents_deleted_total = Counter(
    "documents_deleted_total",
    "Documents removed by the delete cleanup",
)

# ── Extraction ───────────────────────────────────────────────
extractions_completed_total = Counter(
    "extractions_completed_total",
    "Extractions that produced an invoice, by resulting status",
    ["status"],
)

extractions_failed_total = Counter(
    "extractions_failed_total",
    "Extractions that failed the document",
    ["error_code"],
)

extraction_latency_seconds = Histogram(
    "extraction_latency_seconds",
    "Latency of the outbound extraction call",
    ["engine_name"],
    buckets=[0.5, 1, 2, 5, 10, 30, 60, 120],
)

confidence_scores = Histogram(
    "confidence_scores",
    "Distribution of overall extraction confidence (0-100)",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 85, 90, 95, 100],
)

# ── Review ───────────────────────────────────────────────────
invoices_approved_total = Counter(
    "invoices_approved_total",
    "Invoices approved by a reviewer",
)

review_queue_depth = Gauge(
    "review_queue_depth",
    "Current number of documents awaiting review",
)
