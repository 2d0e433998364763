"""Prometheus metric definitions for session billing."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

invoices_created_total = Counter(
    "invoices_created_total",
    "Total invoices committed by the invoice builder.",
)

invoice_build_failures_total = Counter(
    "invoice_build_failures_total",
    "Invoice builder calls that ended without an invoice, by error code.",
    labelnames=["code"],
)

sequence_allocation_retries_total = Counter(
    "invoice_sequence_allocation_retries_total",
    "Invoice number candidates rejected by the uniqueness constraint.",
)

billing_conflicts_total = Counter(
    "billing_conflicts_total",
    "Invoice builder attempts that lost a race for the same sessions.",
)

pdf_generation_seconds = Histogram(
    "pdf_generation_seconds",
    "Time spent rendering a single invoice PDF.",
)

__all__ = [
    "billing_conflicts_total",
    "invoice_build_failures_total",
    "invoices_created_total",
    "pdf_generation_seconds",
    "sequence_allocation_retries_total",
]
