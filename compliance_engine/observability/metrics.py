"""
Prometheus metrics for the risk & compliance scoring engine.
"""

from prometheus_client import Counter, Histogram


# ── Ingest ───────────────────────────────────────────────────
documents_ingested_total = Counter(
    "documents_ingested_total",
    "Total documents ingested",
    ["mime_type"],
)

pipeline_duration_seconds = Histogram(
    "pipeline_duration_seconds",
    "Time to extract and score a document",
    buckets=[0.01, 0.05, 0.1, 0.5, 1, 5, 10],
)

# ── Extraction ───────────────────────────────────────────────
entities_extracted_total = Counter(
    "entities_extracted_total",
    "Total entities extracted",
    ["category"],
)

extraction_confidence = Histogram(
    "extraction_confidence",
    "Distribution of entity-set coverage confidence",
    buckets=[0, 10, 25, 30, 50, 55, 75, 90, 100],
)

# ── Risk ─────────────────────────────────────────────────────
risk_assessments_total = Counter(
    "risk_assessments_total",
    "Total risk assessments created",
    ["risk_category", "human_review_required"],
)

risk_scores = Histogram(
    "risk_scores",
    "Distribution of risk scores",
    buckets=[0, 20, 25, 30, 35, 50, 55, 70, 85, 100],
)

risk_reviews_total = Counter(
    "risk_reviews_total",
    "Risk assessment status transitions",
    ["status"],
)

# ── Compliance ───────────────────────────────────────────────
compliance_checks_total = Counter(
    "compliance_checks_total",
    "Total compliance checks stored",
    ["framework", "status"],
)

compliance_failures_total = Counter(
    "compliance_failures_total",
    "Framework evaluations that could not produce a check",
    ["error_code"],
)

# ── Audit ────────────────────────────────────────────────────
audit_events_total = Counter(
    "audit_events_total",
    "Audit events written",
    ["table_name", "action_type"],
)

audit_write_failures_total = Counter(
    "audit_write_failures_total",
    "Audit events that could not be written",
    ["table_name"],
)

# ── Workflow ─────────────────────────────────────────────────
workflow_transitions_total = Counter(
    "workflow_transitions_total",
    "Workflow step transitions",
    ["status"],
)

workflow_denials_total = Counter(
    "workflow_denials_total",
    "Workflow step transitions denied by the identity gate",
)

# ── Review comments ──────────────────────────────────────────
review_comments_total = Counter(
    "review_comments_total",
    "Review comments added",
    ["comment_type", "priority"],
)
