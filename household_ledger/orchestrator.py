"""
Main Orchestrator for the Household Ledger

Ties the store, the audit logger and the four flows together:
1. Bills (generate, pay, undo, skip, repair on read)
2. Loans (schedule, payments, allocation, deletion)
3. Invoices (reconcile, payments, deletion)
4. Person balances (month closing, payments)

DESIGN DECISION: There is exactly one store per application, chosen by
configuration. Every flow shares it, and shares one AuditLogger that
writes into the same store, so the audit trail sits next to the data it
describes.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from household_ledger.audit import AuditLogger, configure_logging
from household_ledger.config import Settings, get_settings
from household_ledger.flows import BalanceFlow, BillFlow, InvoiceFlow, LoanFlow
from household_ledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStore,
)
from household_ledger.validation import PaymentValidator


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    store: RecordStore
    audit_logger: AuditLogger
    bills: BillFlow
    loans: LoanFlow
    invoices: InvoiceFlow
    balances: BalanceFlow


def create_store(settings: Optional[Settings] = None) -> RecordStore:
    """
    Build the configured RecordStore.

    Falls back to the in-memory store when Google Sheets is selected but
    not configured, so the app still starts (without persistence).
    """
    settings = settings or get_settings()
    if settings.ledger.storage_backend != "google_sheets":
        return InMemoryRecordStore()

    try:
        return GoogleSheetsRecordStore(GoogleSheetsClient(settings.google_sheets))
    except Exception as e:
        # Storage not configured - continue without it
        logger.warning("storage_not_configured", error=str(e))
        return InMemoryRecordStore()


def create_app_components(
    store: Optional[RecordStore] = None,
    settings: Optional[Settings] = None,
    persist_audit: bool = True,
    setup_logging: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        store: Store to use. Built from configuration when None.
        settings: Settings to use. get_settings() when None.
        persist_audit: Write audit events into the store as well as the log.
        setup_logging: Configure structlog from LogSettings first.

    Returns:
        AppComponents with every flow wired to the same store
    """
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(settings.log.level, settings.log.json_output)
    store = store or create_store(settings)
    ledger_settings = settings.ledger

    audit_logger = AuditLogger(store if persist_audit else None)
    validator = PaymentValidator()

    return AppComponents(
        store=store,
        audit_logger=audit_logger,
        bills=BillFlow(store, audit_logger, validator, ledger_settings),
        loans=LoanFlow(store, audit_logger, validator, ledger_settings),
        invoices=InvoiceFlow(store, audit_logger, validator),
        balances=BalanceFlow(store, audit_logger),
    )
