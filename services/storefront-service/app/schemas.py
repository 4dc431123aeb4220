from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict
from decimal import Decimal
from datetime import datetime
from shared.security_config import sanitize_input

# --- Catalog ---

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    image_url: Optional[str] = None

    @field_validator('name', 'description')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class ProductUpdate(BaseModel):
    # No stock field: stock only moves through orders and POST /products/{id}/stock
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    image_url: Optional[str] = None

    @field_validator('name', 'description')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class StockAdjust(BaseModel):
    delta: int

class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    price: Decimal
    stock: int
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# --- Checkout ---

class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    # Name shown in the shopper's cart, used in error messages
    name: Optional[str] = None

class ClientInfoIn(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None

    @field_validator('name', 'phone', 'address')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class OrderCreate(BaseModel):
    client: ClientInfoIn
    items: List[CartLine] = []

class OrderStatusUpdate(BaseModel):
    status: str

class PaymentEvent(BaseModel):
    order_id: str
    event: str = Field(..., pattern="^(succeeded|failed)$")
    payment_id: Optional[str] = None

class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    price: Decimal
    quantity: int

class ClientInfoResponse(BaseModel):
    name: str
    phone: str
    address: str
    email: Optional[str] = None

class OrderResponse(BaseModel):
    id: str
    client: ClientInfoResponse
    items: List[OrderItemResponse]
    total: Decimal
    status: str
    payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# --- Admin ---

class AdminStats(BaseModel):
    total_orders: int
    total_products: int
    total_revenue: Decimal
    status_counts: Dict[str, int]
    low_stock_products: int
    out_of_stock_products: int

class CleanupResult(BaseModel):
    deleted: int
    cutoff: datetime
