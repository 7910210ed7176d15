"""
Pytest configuration and shared fixtures.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.errors import ConfigurationError
from app.db.gateway import InvoiceGateway, teardown_gateway
from app.schemas.invoice import Customer, Invoice, SaleItem


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


class FakeGateway:
    """In-memory stand-in for the invoice store that records every call."""

    def __init__(self, latest=None, fail_with=None):
        self.latest = latest
        self.fail_with = fail_with
        self.invoices: dict[str, Invoice] = {}
        self.calls: list[str] = []

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def latest_invoice_number(self):
        self.calls.append("latest_invoice_number")
        self._maybe_fail()
        return self.latest

    def find_invoice_by_number(self, invoice_number):
        self.calls.append("find_invoice_by_number")
        self._maybe_fail()
        invoice = self.invoices.get(invoice_number)
        return invoice.model_copy(deep=True) if invoice else None

    def insert_invoice(self, invoice):
        self.calls.append("insert_invoice")
        self._maybe_fail()
        self.invoices[invoice.invoice_number] = invoice.model_copy(deep=True)
        self.latest = invoice.invoice_number

    def update_invoice(self, invoice):
        self.calls.append("update_invoice")
        self._maybe_fail()
        self.invoices[invoice.invoice_number] = invoice.model_copy(deep=True)


class UnreachableSource:
    def latest_invoice_number(self):
        raise ConfigurationError("Invoice store is not reachable.")


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def gateway():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    invoice_gateway = InvoiceGateway(engine)
    invoice_gateway.create_schema()
    yield invoice_gateway
    teardown_gateway(invoice_gateway)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        receipt_company_name="KNS COSMETICS",
        receipt_company_phone="078 700 3268",
        currency_label="LKR",
        _env_file=None,
    )


@pytest.fixture
def invoice_factory():
    def build(invoice_number="INV-1001", customer="Nimali Perera", items=None, **overrides):
        items = items if items is not None else [("Soap", 2, "150.00")]
        sale_items = [
            SaleItem(product_id=f"p-{index}", product_name=name, quantity=quantity, unit_price=Decimal(price))
            for index, (name, quantity, price) in enumerate(items)
        ]
        subtotal = sum((item.total for item in sale_items), Decimal("0.00"))
        values = {
            "id": f"id-{invoice_number}",
            "invoice_number": invoice_number,
            "customer": Customer(name=customer),
            "items": sale_items,
            "subtotal": subtotal,
            "discount": Decimal("0.00"),
            "shipping_fee": Decimal("0.00"),
            "pending_amount": Decimal("0.00"),
            "total": subtotal,
            "date": datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc),
        }
        values.update(overrides)
        return Invoice(**values)

    return build


@pytest.fixture
def client(gateway):
    from app.api.deps import get_gateway
    from app.main import app
    from app.services.drafts import DraftRegistry

    app.state.drafts = DraftRegistry()
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()
