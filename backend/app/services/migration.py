from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter

from app.schemas.invoice import Invoice
from app.schemas.migration import MigrationReport


logger = logging.getLogger(__name__)

_cached_invoices = TypeAdapter(list[Invoice])


class MigrationTarget(Protocol):
    def invoice_number_exists(self, invoice_number: str) -> bool: ...

    def insert_invoice(self, invoice: Invoice, created_at: datetime | None = None) -> None: ...

    def has_migration_marker(self, source: str) -> bool: ...

    def record_migration_marker(self, source: str, inserted_count: int, skipped_count: int) -> None: ...


def sale_time(invoice: Invoice) -> datetime:
    if invoice.date.tzinfo is None:
        return invoice.date.replace(tzinfo=timezone.utc)
    return invoice.date.astimezone(timezone.utc)


def load_cached_invoices(path: str | Path) -> list[Invoice]:
    raw = Path(path).read_text(encoding="utf-8").strip()
    if not raw:
        return []
    return _cached_invoices.validate_python(json.loads(raw))


def migrate_cached_invoices(
    gateway: MigrationTarget,
    invoices: list[Invoice],
    source: str = "local-cache",
    force: bool = False,
) -> MigrationReport:
    if not force and gateway.has_migration_marker(source):
        logger.info("Migration source %s already imported, skipping", source)
        return MigrationReport(source=source, inserted=[], skipped=[], already_migrated=True)

    if not invoices:
        logger.info("No cached invoices to migrate from %s", source)
        return MigrationReport(source=source, inserted=[], skipped=[])

    logger.info("Migrating %d cached invoices from %s", len(invoices), source)
    # Oldest first, stamped with the sale date, so numbering continues after the newest one.
    invoices = sorted(invoices, key=lambda invoice: (sale_time(invoice), invoice.invoice_number))
    inserted: list[str] = []
    skipped: list[str] = []
    for invoice in invoices:
        if invoice.invoice_number in inserted or gateway.invoice_number_exists(invoice.invoice_number):
            skipped.append(invoice.invoice_number)
            continue
        gateway.insert_invoice(invoice, created_at=sale_time(invoice))
        inserted.append(invoice.invoice_number)

    gateway.record_migration_marker(source, len(inserted), len(skipped))
    logger.info("Migration from %s finished: %d inserted, %d skipped", source, len(inserted), len(skipped))
    return MigrationReport(source=source, inserted=inserted, skipped=skipped)
