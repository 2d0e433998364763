"""Turn completed, unbilled sessions into a persisted, numbered invoice."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from vereinsknete.backend.src.core.config import get_settings
from vereinsknete.backend.src.core.dates import period_bounds
from vereinsknete.backend.src.core.errors import (
    ConcurrentBillingConflict,
    DomainError,
    NoBillableSessions,
    NotFound,
    ValidationFailed,
)
from vereinsknete.backend.src.models import (
    ClassSession,
    Client,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    SessionStatus,
)
from vereinsknete.backend.src.services.earnings import EarningsSummary, calculate_earnings
from vereinsknete.backend.src.services.invoice_sequencer import InvoiceSequencer
from vereinsknete.backend.src.services.metrics import (
    billing_conflicts_total,
    invoice_build_failures_total,
    invoices_created_total,
)

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BillingRequest:
    """Bill ``client_id`` for sessions starting within the inclusive period."""

    client_id: int
    period_start: date
    period_end: date

    def context(self) -> dict[str, object]:
        return {
            "client_id": self.client_id,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
        }


class InvoiceBuilder:
    """Select billable sessions, number the invoice and link everything atomically.

    :meth:`build` owns the transaction of the session it is given: every
    attempt either commits the invoice, its line items and the session links
    together or rolls all of them back.
    """

    def __init__(
        self,
        sequencer: InvoiceSequencer | None = None,
        *,
        max_attempts: int | None = None,
        due_days: int | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        settings = get_settings()
        self.sequencer = sequencer or InvoiceSequencer()
        self.max_attempts = max_attempts or settings.billing_max_attempts
        self.due_days = settings.invoice_due_days if due_days is None else due_days
        self.max_period_days = settings.max_billing_period_days
        self._today = today

    def select_billable(self, session: Session, request: BillingRequest) -> list[ClassSession]:
        """Return completed, unlinked sessions of the client within the period."""

        lower, upper = period_bounds(request.period_start, request.period_end)
        statement = (
            select(ClassSession)
            .where(
                ClassSession.client_id == request.client_id,
                ClassSession.status == SessionStatus.COMPLETED,
                ClassSession.invoice_id.is_(None),
                ClassSession.start_at >= lower,
                ClassSession.start_at < upper,
            )
            .order_by(ClassSession.start_at, ClassSession.id)
        )
        return list(session.scalars(statement))

    def build(self, session: Session, request: BillingRequest) -> Invoice:
        """Create the invoice for ``request`` or raise leaving the store untouched."""

        self._validate(request)
        for attempt in range(1, self.max_attempts + 1):
            try:
                invoice = self._build_once(session, request)
                session.commit()
            except ConcurrentBillingConflict as exc:
                session.rollback()
                billing_conflicts_total.inc()
                LOGGER.warning(
                    "invoice_build_conflict", attempt=attempt, **exc.context
                )
                if attempt == self.max_attempts:
                    invoice_build_failures_total.labels(code=exc.code).inc()
                    raise
                continue
            except DomainError as exc:
                session.rollback()
                invoice_build_failures_total.labels(code=exc.code).inc()
                LOGGER.warning("invoice_build_failed", error=exc.code, **exc.context)
                raise
            except Exception:
                session.rollback()
                LOGGER.exception("invoice_build_error", **request.context())
                raise

            invoices_created_total.inc()
            LOGGER.info(
                "invoice_created",
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                total_amount=str(invoice.total_amount),
                sessions=len(invoice.line_items),
                attempt=attempt,
                **request.context(),
            )
            return invoice

        raise AssertionError("unreachable")  # pragma: no cover

    def _validate(self, request: BillingRequest) -> None:
        period_bounds(request.period_start, request.period_end)
        span = (request.period_end - request.period_start).days + 1
        if span > self.max_period_days:
            raise ValidationFailed(
                "Billing period is too long",
                max_days=self.max_period_days,
                **request.context(),
            )

    def _build_once(self, session: Session, request: BillingRequest) -> Invoice:
        client = session.get(Client, request.client_id)
        if client is None:
            raise NotFound("Client not found", client_id=request.client_id)

        candidates = self.select_billable(session, request)
        if not candidates:
            raise NoBillableSessions(
                "No completed, uninvoiced sessions in the billing period",
                **request.context(),
            )

        summary = calculate_earnings(candidates, client.hourly_rate)
        issue_date = self._today()
        invoice = Invoice(
            client_id=client.id,
            year=issue_date.year,
            issue_date=issue_date,
            period_start=request.period_start,
            period_end=request.period_end,
            total_hours=summary.total_hours,
            total_amount=summary.total_amount,
            status=InvoiceStatus.CREATED,
            due_date=issue_date + timedelta(days=self.due_days),
        )
        self.sequencer.allocate(session, invoice)
        self._link_sessions(session, invoice, summary, request)
        self._add_line_items(session, invoice, summary, request)
        return session.scalars(
            select(Invoice)
            .options(selectinload(Invoice.line_items))
            .where(Invoice.id == invoice.id)
        ).one()

    def _link_sessions(
        self,
        session: Session,
        invoice: Invoice,
        summary: EarningsSummary,
        request: BillingRequest,
    ) -> None:
        session_ids = summary.session_ids
        result = session.execute(
            update(ClassSession)
            .where(
                ClassSession.id.in_(session_ids),
                ClassSession.status == SessionStatus.COMPLETED,
                ClassSession.invoice_id.is_(None),
            )
            .values(invoice_id=invoice.id)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount != len(session_ids):
            raise ConcurrentBillingConflict(
                "Sessions were billed or changed by a concurrent request",
                expected=len(session_ids),
                linked=result.rowcount,
                **request.context(),
            )

    def _add_line_items(
        self,
        session: Session,
        invoice: Invoice,
        summary: EarningsSummary,
        request: BillingRequest,
    ) -> None:
        session.add_all(
            InvoiceLineItem(
                invoice_id=invoice.id,
                session_id=line.session_id,
                description=line.description,
                service_start=line.service_start,
                service_end=line.service_end,
                hours=line.hours,
                rate=line.rate,
                amount=line.amount,
            )
            for line in summary.lines
        )
        try:
            session.flush()
        except IntegrityError as exc:
            raise ConcurrentBillingConflict(
                "Sessions already carry a billed line item",
                db_error=str(exc.orig),
                **request.context(),
            ) from exc


__all__ = ["BillingRequest", "InvoiceBuilder"]
