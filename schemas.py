"""
Schemas for the storefront

Request bodies and stored document shapes. Each collection name is the
snake_case of the class it stores (Product -> "product",
ProductVariant -> "product_variant"). JSON bodies may use camelCase keys;
documents are stored with the snake_case field names.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

ProductStatus = Literal["in_stock", "low_stock", "out_of_stock", "discontinued"]
OrderStatus = Literal["pending", "processing", "completed", "cancelled", "refunded"]
InventoryReason = Literal[
    "order", "manual", "return", "adjustment",
    "product_created", "product_updated", "product_deleted",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Auth
class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


# Products
class Inventory(CamelModel):
    quantity: int = Field(0, ge=0)
    low_stock_threshold: int = Field(5, ge=0)
    status: ProductStatus = "in_stock"
    managed: bool = True


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    images: List[str] = []
    category: str = ""
    subcategory: Optional[str] = None
    tags: List[str] = []
    sku: str = Field(..., min_length=1)
    barcode: Optional[str] = None
    featured: bool = False
    inventory: Inventory = Field(default_factory=Inventory)
    attributes: Dict[str, Any] = {}
    variant_attributes: List[str] = []

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @field_validator("sku")
    @classmethod
    def strip_sku(cls, v: str) -> str:
        return v.strip()


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    images: Optional[List[str]] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    tags: Optional[List[str]] = None
    sku: Optional[str] = Field(None, min_length=1)
    barcode: Optional[str] = None
    featured: Optional[bool] = None
    inventory: Optional[Inventory] = None
    attributes: Optional[Dict[str, Any]] = None
    variant_attributes: Optional[List[str]] = None

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return list(dict.fromkeys(v)) if v is not None else v


class VariantCreate(CamelModel):
    sku: str = Field(..., min_length=1)
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    inventory: Inventory = Field(default_factory=Inventory)
    attributes: Dict[str, str] = {}
    barcode: Optional[str] = None
    images: List[str] = []


class VariantUpdate(CamelModel):
    sku: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    inventory: Optional[Inventory] = None
    attributes: Optional[Dict[str, str]] = None
    barcode: Optional[str] = None
    images: Optional[List[str]] = None


class InventoryAdjust(CamelModel):
    quantity: int = Field(..., ge=0, description="New absolute quantity")
    reason: InventoryReason = "manual"
    variant_id: Optional[str] = None
    details: Optional[str] = None


# Cart
class CartItem(BaseModel):
    id: str
    name: str
    price: float = Field(..., ge=0)
    image: Optional[str] = None
    quantity: int = Field(..., ge=1)


class CartAdd(BaseModel):
    id: str
    quantity: int = Field(1, ge=1)


class CartQuantityUpdate(BaseModel):
    quantity: Optional[int] = None


# Orders
class CheckoutRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None


class RevalidateRequest(BaseModel):
    tag: str = "products"


# Settings (one document per section in "settings")
class StoreSettings(CamelModel):
    store_name: str
    store_description: Optional[str] = None
    store_email: EmailStr
    store_phone: Optional[str] = None
    store_address: Optional[str] = None
    store_currency: str = "USD"
    store_time_zone: str = "UTC"


class ShippingSettings(CamelModel):
    enable_free_shipping: bool = False
    free_shipping_threshold: Optional[float] = Field(None, ge=0)
    enable_flat_rate: bool = False
    flat_rate_amount: Optional[float] = Field(None, ge=0)
    enable_local_pickup: bool = False


class NotificationSettings(CamelModel):
    email_notifications: bool = True
    order_confirmation: bool = True
    order_status_update: bool = True
    low_stock_alert: bool = True
    low_stock_threshold: int = Field(5, ge=0)
    admin_email: EmailStr
    email_template: Optional[str] = None


class PromoBanner(CamelModel):
    enabled: bool = False
    text: str = ""
    bg_color: str = "#000000"
    text_color: str = "#ffffff"
    link: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
