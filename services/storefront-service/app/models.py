from datetime import datetime
from enum import Enum
from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PREPARING = "preparing"
    SHIPPED = "shipped"
    DONE = "done"
    CANCELLED = "cancelled"


class ProductDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: str
    description: str = ""
    price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class ClientInfo(BaseModel):
    name: str
    phone: str
    address: str
    email: Optional[str] = None


class OrderItemDB(BaseModel):
    # Snapshot taken at order creation; never follows later product edits
    product_id: str
    name: str
    price: Decimal
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class OrderDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    client: ClientInfo
    items: List[OrderItemDB]
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
