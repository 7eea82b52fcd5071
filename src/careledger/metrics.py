"""Prometheus metrics definitions for careledger."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "careledger_http_requests_total",
    "Total number of HTTP requests processed by the careledger API",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "careledger_http_request_duration_seconds",
    "Latency of HTTP requests processed by the careledger API",
    ["method", "path"],
)

EXTRACTIONS = Counter(
    "careledger_extractions_total",
    "Receipt extraction attempts by outcome",
    ["status"],
)

EXTRACTION_LATENCY = Histogram(
    "careledger_extraction_duration_seconds",
    "Time spent waiting on the OCR endpoint",
)

TRIAGE_DECISIONS = Counter(
    "careledger_triage_decisions_total",
    "Triage transitions applied or rejected",
    ["decision", "result"],
)

MATERIALIZATIONS = Counter(
    "careledger_materializations_total",
    "Expense materializations by result",
    ["source", "result"],
)

SYNCED_TRANSACTIONS = Counter(
    "careledger_synced_transactions_total",
    "Bank transactions seen during sync by result",
    ["result"],
)

__all__ = [
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "EXTRACTIONS",
    "EXTRACTION_LATENCY",
    "TRIAGE_DECISIONS",
    "MATERIALIZATIONS",
    "SYNCED_TRANSACTIONS",
]
