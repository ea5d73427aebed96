# standpos/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, computed_field
from typing import Annotated, List, Literal, Optional, Union
from decimal import Decimal
from datetime import datetime

from standpos.domain.status import DomainStatus
from standpos.domain import pricing

BOOTH_ADDRESS = "Caseta de peaje"
DEFAULT_CUSTOMER_NAME = "Cliente"
DEFAULT_CATEGORY = "Comida"
DEFAULT_PRODUCT_IMAGE = "https://images.unsplash.com/photo-1546069901-ba9599a7e63c?w=400"

BusinessMode = Literal["abierto", "abierto-carro-casa", "abierto-carro", "abierto-casa", "cerrado"]


class LineItem(BaseModel):
    """One product line of an order, fixed once the order is placed."""

    product_id: str
    name: str
    quantity: int = Field(..., gt=0)
    unit_price: Decimal
    image_ref: Optional[str] = None


class Coupon(BaseModel):
    code: str
    discount_amount: Decimal


class Customer(BaseModel):
    display_name: str = DEFAULT_CUSTOMER_NAME
    avatar_ref: str = ""
    phone: str = ""


class BoothDelivery(BaseModel):
    """Car-side delivery at the toll booth."""

    kind: Literal["booth"] = "booth"
    vehicle: Optional[str] = None
    plates: Optional[str] = None
    address: str = BOOTH_ADDRESS


class GovernmentDelivery(BaseModel):
    """Delivery to a government building."""

    kind: Literal["government"] = "government"
    address: Optional[str] = None
    building: Optional[str] = None
    floor: Optional[str] = None

    @computed_field
    @property
    def display_address(self) -> Optional[str]:
        if self.address is None:
            return None
        parts = [self.address]
        if self.building:
            parts.append(self.building)
        if self.floor:
            parts.append(f"Piso {self.floor}")
        return ", ".join(parts)


class NoDelivery(BaseModel):
    kind: Literal["none"] = "none"


Delivery = Annotated[
    Union[BoothDelivery, GovernmentDelivery, NoDelivery],
    Field(discriminator="kind"),
]


class Order(BaseModel):
    """
    Order as seen by kitchen and back-office.
    confirmation_code never leaves the process: it is excluded from dumps,
    so cache snapshots and API responses only carry requires_confirmation.
    """

    id: str
    status: DomainStatus
    line_items: List[LineItem] = Field(default_factory=list)
    subtotal: Decimal
    total: Decimal
    delivery_fee: Optional[Decimal] = None
    coupon: Optional[Coupon] = None
    delivery: Delivery = Field(default_factory=NoDelivery)
    customer: Customer = Field(default_factory=Customer)
    requires_confirmation: bool = False
    confirmation_code: Optional[str] = Field(default=None, exclude=True, repr=False)
    created_at: datetime
    display_time: str
    note: Optional[str] = None
    fulfillment: Literal["Delivery", "Recoger"] = "Delivery"

    model_config = ConfigDict(from_attributes=True)

    @property
    def timestamp(self) -> float:
        return self.created_at.timestamp()

    @property
    def is_pickup(self) -> bool:
        return self.fulfillment == "Recoger"


class OrderDraft(BaseModel):
    """Schema for creating an order (header + line items)."""

    line_items: List[LineItem] = Field(..., min_length=1)
    coupon: Optional[Coupon] = None
    delivery_fee: Optional[Decimal] = Field(default=None, ge=0)
    delivery: Delivery = Field(default_factory=NoDelivery)
    customer: Customer = Field(default_factory=Customer)
    confirmation_code: Optional[str] = None
    note: Optional[str] = None
    fulfillment: Literal["Delivery", "Recoger"] = "Delivery"


class StatusChange(BaseModel):
    """Schema for a status mutation request."""

    status: DomainStatus
    confirmation_code: Optional[str] = None
    override: bool = Field(False, description="Back-office correction, skips the transition graph")


class OrdersSnapshot(BaseModel):
    """List of orders plus where it came from; offline means stale cached data."""

    orders: List[Order]
    offline: bool = False
    error: Optional[str] = None


class Product(BaseModel):
    id: str
    name: str
    category: str = DEFAULT_CATEGORY
    cost_price: Decimal
    sale_price: Decimal
    image_ref: str = ""
    active: bool = True
    stock_count: int = Field(0, ge=0)

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def margin(self) -> Decimal:
        return pricing.margin(self.sale_price, self.cost_price)

    @property
    def is_available(self) -> bool:
        return self.active and self.stock_count > 0


class ProductIn(BaseModel):
    """Schema for creating or updating a product."""

    name: str = Field(..., min_length=1, max_length=100)
    category: str = DEFAULT_CATEGORY
    cost_price: Decimal = Field(..., gt=0)
    sale_price: Decimal = Field(..., gt=0)
    image_ref: str = ""
    active: bool = True
    stock_count: int = Field(0, ge=0)


class CatalogSummary(BaseModel):
    products: List[Product]
    total_count: int
    available_count: int
    inventory_cost: Decimal
    offline: bool = False


class KitchenState(BaseModel):
    open: bool = True
    mode: BusinessMode = "abierto-carro-casa"


class KitchenStateIn(BaseModel):
    mode: BusinessMode


class StoreHealth(BaseModel):
    status: Literal["checking", "connected", "disconnected"] = "checking"
    last_sync: Optional[datetime] = None
