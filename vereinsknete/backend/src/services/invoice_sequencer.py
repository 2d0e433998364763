"""Per-year invoice number allocation.

Numbers are never reserved ahead of time. The next candidate is derived from
committed invoices (``max(sequence_number) + 1`` for the year) and the invoice
row carrying it is inserted inside a SAVEPOINT. The ``(year, sequence_number)``
unique constraint rejects a candidate that a concurrent writer committed
first; the savepoint is rolled back, leaving no trace, and a fresh candidate
is computed from the store.
"""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vereinsknete.backend.src.core.config import get_settings
from vereinsknete.backend.src.core.errors import SequenceAllocationFailed
from vereinsknete.backend.src.models import Invoice
from vereinsknete.backend.src.services.metrics import sequence_allocation_retries_total

LOGGER = structlog.get_logger(__name__)


class InvoiceSequencer:
    """Allocate gapless, per-year sequence numbers for invoices."""

    def __init__(self, max_attempts: int | None = None) -> None:
        self.max_attempts = max_attempts or get_settings().invoice_sequence_max_attempts

    def next_candidate(self, session: Session, year: int) -> int:
        """Return ``max(sequence_number) + 1`` over invoices of ``year``."""

        current = session.execute(
            select(func.max(Invoice.sequence_number)).where(Invoice.year == year)
        ).scalar_one_or_none()
        return (current or 0) + 1

    def allocate(self, session: Session, invoice: Invoice) -> int:
        """Number ``invoice`` within its ``year`` and insert it into ``session``.

        The insert is flushed but not committed: the caller's unit of work
        decides whether the number becomes permanent.
        """

        year = invoice.year
        last_candidate: int | None = None
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.next_candidate(session, year)
            invoice.sequence_number = candidate
            try:
                with session.begin_nested():
                    session.add(invoice)
                    session.flush()
            except IntegrityError as exc:
                last_candidate = candidate
                sequence_allocation_retries_total.inc()
                LOGGER.warning(
                    "invoice_sequence_conflict",
                    year=year,
                    sequence_number=candidate,
                    attempt=attempt,
                    error=str(exc.orig),
                )
                continue

            LOGGER.debug(
                "invoice_sequence_allocated",
                year=year,
                sequence_number=candidate,
                attempt=attempt,
            )
            return candidate

        LOGGER.warning(
            "invoice_sequence_exhausted",
            year=year,
            attempts=self.max_attempts,
            last_candidate=last_candidate,
        )
        raise SequenceAllocationFailed(
            "Could not allocate an invoice number",
            year=year,
            attempts=self.max_attempts,
            conflicting_number=last_candidate,
        )


__all__ = ["InvoiceSequencer"]
