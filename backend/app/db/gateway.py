"""Table-store gateway for invoices.

The gateway is created once per process with :func:`init_gateway` and passed
explicitly to whatever needs it; :func:`teardown_gateway` releases the pool.
Every SQLAlchemy failure leaves this module as either a
:class:`ConfigurationError` (store unreachable) or a :class:`PersistenceError`
(store rejected the operation).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app import models  # noqa: F401  registers the tables on Base.metadata
from app.core.config import Settings
from app.core.errors import ConfigurationError, PersistenceError
from app.db.base import Base
from app.models.invoice import InvoiceRecord
from app.models.migration_marker import MigrationMarker
from app.schemas.invoice import Customer, Invoice, SaleItem
from app.services.money import to_money


logger = logging.getLogger(__name__)


def _error_detail(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def invoice_to_row_values(invoice: Invoice) -> dict:
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "customer": invoice.customer.model_dump(),
        "items": [item.model_dump(mode="json") for item in invoice.items],
        "subtotal": to_money(invoice.subtotal),
        "discount": to_money(invoice.discount),
        "shipping_fee": to_money(invoice.shipping_fee),
        "pending_amount": to_money(invoice.pending_amount),
        "total": to_money(invoice.total),
        "date": invoice.date,
        "owner_id": invoice.owner_id,
    }


def invoice_from_row(row: InvoiceRecord) -> Invoice:
    return Invoice(
        id=row.id,
        invoice_number=row.invoice_number,
        customer=Customer.model_validate(row.customer or {}),
        items=[SaleItem.model_validate(item) for item in (row.items or [])],
        subtotal=to_money(row.subtotal),
        discount=to_money(row.discount),
        shipping_fee=to_money(row.shipping_fee),
        pending_amount=to_money(row.pending_amount),
        total=to_money(row.total),
        date=_as_utc(row.date),
        owner_id=row.owner_id,
    )


class InvoiceGateway:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except (OperationalError, InterfaceError) as exc:
            db.rollback()
            logger.error("Invoice store unreachable: %s", _error_detail(exc))
            raise ConfigurationError("Invoice store is not reachable. Check the database configuration.") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Invoice store rejected the operation: %s", _error_detail(exc))
            raise PersistenceError(_error_detail(exc)) from exc
        finally:
            db.close()

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except (OperationalError, InterfaceError) as exc:
            raise ConfigurationError("Invoice store is not reachable. Check the database configuration.") from exc

    def list_invoices(self, search: str | None = None) -> list[Invoice]:
        with self.session() as db:
            rows = db.scalars(
                select(InvoiceRecord).order_by(InvoiceRecord.created_at.desc(), InvoiceRecord.invoice_number.desc())
            ).all()
            invoices = [invoice_from_row(row) for row in rows]

        term = (search or "").strip().lower()
        if not term:
            return invoices
        return [
            invoice
            for invoice in invoices
            if term in invoice.invoice_number.lower() or term in invoice.customer.name.lower()
        ]

    def latest_invoice_number(self) -> str | None:
        with self.session() as db:
            return db.scalar(
                select(InvoiceRecord.invoice_number)
                .order_by(InvoiceRecord.created_at.desc(), InvoiceRecord.invoice_number.desc())
                .limit(1)
            )

    def find_invoice_by_number(self, invoice_number: str) -> Invoice | None:
        with self.session() as db:
            row = db.scalar(select(InvoiceRecord).where(InvoiceRecord.invoice_number == invoice_number))
            return invoice_from_row(row) if row else None

    def invoice_number_exists(self, invoice_number: str) -> bool:
        with self.session() as db:
            found = db.scalar(select(InvoiceRecord.id).where(InvoiceRecord.invoice_number == invoice_number))
            return found is not None

    def insert_invoice(self, invoice: Invoice, created_at: datetime | None = None) -> None:
        values = invoice_to_row_values(invoice)
        if created_at is not None:
            values["created_at"] = created_at
        with self.session() as db:
            db.add(InvoiceRecord(**values))
            db.commit()
        logger.info("Invoice %s inserted", invoice.invoice_number)

    def update_invoice(self, invoice: Invoice) -> None:
        with self.session() as db:
            row = db.scalar(select(InvoiceRecord).where(InvoiceRecord.id == invoice.id))
            if not row:
                raise PersistenceError(f"Invoice {invoice.invoice_number} no longer exists")

            values = invoice_to_row_values(invoice)
            for key in ("customer", "items", "subtotal", "discount", "shipping_fee", "pending_amount", "total", "date", "owner_id"):
                setattr(row, key, values[key])
            row.updated_at = datetime.now(timezone.utc)
            db.commit()
        logger.info("Invoice %s updated", invoice.invoice_number)

    def has_migration_marker(self, source: str) -> bool:
        with self.session() as db:
            return db.scalar(select(MigrationMarker.id).where(MigrationMarker.source == source)) is not None

    def record_migration_marker(self, source: str, inserted_count: int, skipped_count: int) -> None:
        with self.session() as db:
            marker = db.scalar(select(MigrationMarker).where(MigrationMarker.source == source))
            if not marker:
                marker = MigrationMarker(source=source)
                db.add(marker)
            marker.inserted_count = inserted_count
            marker.skipped_count = skipped_count
            marker.migrated_at = datetime.now(timezone.utc)
            db.commit()


def init_gateway(settings: Settings) -> InvoiceGateway:
    database_url = settings.database_url.strip()
    if not database_url:
        raise ConfigurationError("Invoice store is not configured. Set DATABASE_URL first.")

    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    try:
        engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
    except (ArgumentError, ImportError) as exc:
        raise ConfigurationError(f"Invoice store is not configured correctly: {exc}") from exc

    if engine.dialect.name == "postgresql":

        @event.listens_for(engine, "connect")
        def set_search_path(dbapi_connection, _connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("SET search_path TO public")
            cursor.close()

    logger.info("Invoice gateway initialised (%s)", engine.dialect.name)
    return InvoiceGateway(engine)


def teardown_gateway(gateway: InvoiceGateway) -> None:
    gateway.engine.dispose()
    logger.info("Invoice gateway disposed")
