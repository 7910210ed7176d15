from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, AliasGenerator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.services.money import ZERO, line_total, to_money


class CamelModel(BaseModel):
    # Cached invoices from the old browser client use camelCase keys; output stays snake_case.
    model_config = ConfigDict(alias_generator=AliasGenerator(validation_alias=to_camel), populate_by_name=True)


class Customer(CamelModel):
    name: str = ""


class SaleItem(CamelModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total: Decimal = ZERO

    @model_validator(mode="after")
    def recompute_total(self) -> "SaleItem":
        self.unit_price = to_money(self.unit_price)
        self.total = line_total(self.quantity, self.unit_price)
        return self


class Invoice(CamelModel):
    id: str
    invoice_number: str
    customer: Customer
    items: list[SaleItem] = Field(default_factory=list)
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    shipping_fee: Decimal = ZERO
    pending_amount: Decimal = ZERO
    total: Decimal = ZERO
    date: datetime
    owner_id: str | None = Field(default=None, validation_alias=AliasChoices("owner_id", "ownerId", "user_id"))


class BulkEntry(BaseModel):
    temp_id: str
    name: str
    quantity: int | None = None
    price: Decimal | None = None
    error: str | None = None
