from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value})


# Products
class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: int = Field(..., ge=0, description="Price in the smallest currency unit")
    stock_quantity: int = Field(..., ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    stock_quantity: int
    order_count: int
    seller_id: int
    is_active: bool
    remaining_stock: Optional[int] = None

    model_config = {"from_attributes": True}


# Orders
class OrderCreate(BaseModel):
    """Checkout request. The buyer is taken from the bearer token."""
    product_id: int = Field(..., gt=0)
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=3, max_length=32)
    address: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)

    model_config = {"str_strip_whitespace": True}


class OrderActionRequest(BaseModel):
    # validated against OrderAction by the state machine
    action: str = Field(..., min_length=1)
    notes: Optional[str] = None
    pickup_address: Optional[str] = None


class OrderUpdate(BaseModel):
    status: OrderStatus


class OrderBulkStatusUpdate(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)
    status: OrderStatus


class OrderOut(BaseModel):
    id: int
    user_id: int
    product_id: int
    full_name: str
    phone: str
    address: str
    pickup_address: Optional[str] = None
    quantity: int
    total_amount: int
    status: OrderStatus
    is_agree: Optional[bool] = None
    is_client_went: Optional[bool] = None
    is_client_claimed: Optional[bool] = None
    seller_notes: Optional[str] = None
    client_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    orders: List[OrderOut]
    total: int
    skip: int
    limit: int


class OrderActionResponse(BaseModel):
    success: bool = True
    order: OrderOut
    message: str


class BulkStatusResponse(BaseModel):
    success: bool = True
    updated: int
    orders: List[OrderOut]


# Reviews
class ReviewCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    order_id: int = Field(..., gt=0)
    # range is enforced by the review gate so it reports invalid_rating
    rating: int
    comment: Optional[str] = None


class ReviewOut(BaseModel):
    id: int
    product_id: int
    order_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# Notifications
class NotificationOut(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AdminNotifyRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    data: Optional[Dict[str, Any]] = None


class DeliveryResult(BaseModel):
    user_id: int
    status: str
    error: Optional[str] = None


class AdminNotifyResponse(BaseModel):
    success: bool = True
    notified: int
    results: List[DeliveryResult]


# Complaints
class ComplaintCreate(BaseModel):
    order_id: int = Field(..., gt=0)
    complaint_text: str = Field(..., min_length=1)


class ComplaintOut(BaseModel):
    id: int
    order_id: int
    user_id: int
    complaint_text: str
    status: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# Users
class TelegramLinkRequest(BaseModel):
    telegram_id: str = Field(..., min_length=1, max_length=64)


class UserOut(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    is_admin: bool
    is_verified_seller: bool
    telegram_id: Optional[str] = None

    model_config = {"from_attributes": True}


# Admin dashboard
class AdminStats(BaseModel):
    total_users: int
    total_sellers: int
    total_products: int
    total_orders: int
    orders_by_status: Dict[str, int]
    revenue_completed: int
    recent_orders: List[OrderOut]
