"""
Schemas for the Gift Storefront

Pydantic models shared by the cart, gifting, address and checkout layers.
Field names are snake_case in Python and camelCase on the wire, matching the
upstream commerce API (`isGift`, `giftWrapId`, `addressId`, ...).

Money is carried as Decimal and emitted as a JSON number.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer
from pydantic.alias_generators import to_camel

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

GREETING_MAX_LENGTH = 200


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, **kwargs) -> dict:
        return self.model_dump(mode="json", by_alias=True, **kwargs)


# -----------
# Cart models
# -----------

class CartItem(WireModel):
    id: str = Field(..., description="Product id")
    name: str = Field(..., description="Product name snapshot")
    price: Money = Field(..., ge=0, description="Unit price at time of add")
    image: Optional[str] = Field(None, description="Primary product image URL")
    quantity: int = Field(1, ge=1, description="Units in the cart")


class GiftOptions(WireModel):
    is_gift: bool = False
    gift_wrap_id: Optional[str] = None
    occasion_id: Optional[str] = None
    recipient_id: Optional[str] = None
    greeting_message: Optional[str] = Field(None, max_length=GREETING_MAX_LENGTH)
    sender_name: Optional[str] = None
    show_sender_name: bool = True


class CartState(WireModel):
    items: List[CartItem] = Field(default_factory=list)
    gift_options: GiftOptions = Field(default_factory=GiftOptions)


# ---------------------------
# Gift catalog (read-only)
# ---------------------------

class GiftWrap(WireModel):
    id: str
    name: str
    price: Money = Field(..., ge=0)
    type: Optional[str] = None
    image: Optional[str] = None


class Occasion(WireModel):
    id: str
    name: str
    emoji: Optional[str] = None


class Recipient(WireModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None


# ---------
# Addresses
# ---------

class AddressLabel(str, Enum):
    HOME = "Home"
    WORK = "Work"
    OTHER = "Other"


class Coordinates(WireModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class AddressDraft(WireModel):
    label: AddressLabel = AddressLabel.HOME
    street: str = ""
    apartment: str = ""
    landmark: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""

    def one_line(self) -> str:
        return f"{self.street}, {self.city}, {self.state} - {self.pincode}"


class Address(WireModel):
    id: str
    label: AddressLabel = AddressLabel.HOME
    street: str
    apartment: Optional[str] = None
    landmark: Optional[str] = None
    city: str
    state: str
    pincode: str
    latitude: float = 0
    longitude: float = 0
    is_default: bool = False


# -------
# Pricing
# -------

class PricingSnapshot(WireModel):
    subtotal: Money
    gift_wrap_price: Money
    delivery_fee: Money
    tax: Money
    total: Money


# ------
# Orders
# ------

class PaymentMethod(str, Enum):
    CASH = "CASH"
    ONLINE = "ONLINE"


class OrderRequest(WireModel):
    items: List[CartItem]
    address_id: str
    payment_method: PaymentMethod = PaymentMethod.CASH
    subtotal: Money
    gift_wrap_price: Money
    delivery_fee: Money
    tax: Money
    total: Money
    is_gift: bool = False
    recipient_id: Optional[str] = None
    occasion_id: Optional[str] = None
    gift_wrap_id: Optional[str] = None
    greeting_message: Optional[str] = None
    sender_name: Optional[str] = None
    show_sender_name: Optional[bool] = None


# ----
# Auth
# ----

class SignupRequest(WireModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    name: Optional[str] = None
    phone: Optional[str] = None


class LoginRequest(WireModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
