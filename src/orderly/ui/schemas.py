"""Pydantic models for the CLI's JSON input and output."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from orderly.orders.entities import Address, Order, OrderItem, SellerOrder
from orderly.orders.ports import Page
from orderly.orders.status import OrderStatus
from orderly.orders.types import CancelResult, CreateOrderInput, CreateOrderItemInput

ViewT = TypeVar("ViewT", bound=BaseModel)


class AddressModel(BaseModel):
    full_name: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_code: str = ""
    phone: str = ""


class CreateOrderItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    product_name: str
    quantity: int
    unit_price_cents: int
    seller_id: str
    variant_id: str = ""
    variant_name: str = ""
    sku: str = ""
    image_url: str = ""


class CreateOrderRequest(BaseModel):
    """Body of ``orderly create``.

    Quantity, price, and seller checks are left to the service so the CLI
    reports the same messages as any other caller.
    """

    buyer_id: str
    currency: str = ""
    shipping_address: AddressModel = Field(default_factory=AddressModel)
    items: list[CreateOrderItemRequest] = Field(min_length=1)

    def to_input(self) -> CreateOrderInput:
        return CreateOrderInput(
            buyer_id=self.buyer_id,
            currency=self.currency.upper(),
            shipping_address=Address(**self.shipping_address.model_dump()),
            items=tuple(
                CreateOrderItemInput(**item.model_dump()) for item in self.items
            ),
        )


class OrderItemView(BaseModel):
    id: str
    product_id: str
    product_name: str
    variant_id: str
    sku: str
    quantity: int
    unit_price_cents: int
    total_cents: int
    seller_id: str

    @classmethod
    def from_item(cls, item: OrderItem) -> OrderItemView:
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            variant_id=item.variant_id,
            sku=item.sku,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            total_cents=item.total_cents,
            seller_id=item.seller_id,
        )


class SellerOrderView(BaseModel):
    id: str
    order_id: str
    seller_id: str
    status: OrderStatus
    subtotal_cents: int
    version: int
    updated_at: datetime
    items: list[OrderItemView] = Field(default_factory=list)

    @classmethod
    def from_seller_order(cls, seller_order: SellerOrder) -> SellerOrderView:
        return cls(
            id=seller_order.id,
            order_id=seller_order.order_id,
            seller_id=seller_order.seller_id,
            status=seller_order.status,
            subtotal_cents=seller_order.subtotal_cents,
            version=seller_order.version,
            updated_at=seller_order.updated_at,
            items=[OrderItemView.from_item(item) for item in seller_order.items],
        )


class OrderView(BaseModel):
    id: str
    order_number: str
    buyer_id: str
    status: OrderStatus
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    currency: str
    shipping_address: AddressModel
    version: int
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemView] = Field(default_factory=list)
    seller_orders: list[SellerOrderView] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order: Order) -> OrderView:
        return cls(
            id=order.id,
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            status=order.status,
            subtotal_cents=order.subtotal_cents,
            shipping_cents=order.shipping_cents,
            tax_cents=order.tax_cents,
            discount_cents=order.discount_cents,
            total_cents=order.total_cents,
            currency=order.currency,
            shipping_address=AddressModel(**order.shipping_address.to_dict()),
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[OrderItemView.from_item(item) for item in order.items],
            seller_orders=[
                SellerOrderView.from_seller_order(so) for so in order.seller_orders
            ],
        )


class CascadeFailureView(BaseModel):
    seller_order_id: str
    error: str


class CancelView(BaseModel):
    order: OrderView
    cancelled: list[str]
    skipped: list[str]
    failed: list[CascadeFailureView]
    listing_error: str | None = None

    @classmethod
    def from_result(cls, result: CancelResult) -> CancelView:
        cascade = result.cascade
        return cls(
            order=OrderView.from_order(result.order),
            cancelled=list(cascade.cancelled),
            skipped=list(cascade.skipped),
            failed=[
                CascadeFailureView(seller_order_id=f.seller_order_id, error=f.error)
                for f in cascade.failed
            ],
            listing_error=cascade.listing_error,
        )


class PageView(BaseModel, Generic[ViewT]):
    items: list[ViewT]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page[Any], items: list[ViewT]) -> PageView[ViewT]:
        return cls(
            items=items,
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
        )
