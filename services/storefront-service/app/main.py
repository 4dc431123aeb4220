from fastapi import FastAPI, Depends, HTTPException, status, Query, Request, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Optional, List
import os
import sys

# Add the parent directory to sys.path to resolve shared imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../")))

from shared.utils import (
    get_db_client, settings, SuccessResponse, ErrorResponse,
    HealthResponse, require_admin, require_internal
)
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware, limiter

from app.schemas import (
    OrderCreate, OrderResponse, OrderStatusUpdate, PaymentEvent,
    ProductCreate, ProductUpdate, ProductResponse, StockAdjust,
    AdminStats, CleanupResult
)
from app.models import ClientInfo, OrderDB, ProductDB
from app.errors import StorefrontError, CompensationFailed
from app.store import DocumentStore, MongoStore
from app.orders import OrderService
from app.notifications import OrderNotifier, notify_order_created
from app import products as catalog
from app.reports import admin_stats
from app.maintenance import cleanup_old_orders

SERVICE_NAME = "storefront-service"

# Setup Logging
logger = setup_logging(SERVICE_NAME)

app = FastAPI(title="Storefront Service")

# Security Setup
setup_rate_limiting(app)
app.add_middleware(SecurityHeadersMiddleware)

# Middleware
app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup_db_client():
    app.state.store = MongoStore(get_db_client(), settings.DATABASE_NAME)
    await app.state.store.create_indexes()
    app.state.notifier = OrderNotifier(settings.NOTIFY_WEBHOOK_URL)

@app.on_event("shutdown")
async def shutdown_db_client():
    app.state.store.close()

@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    extra = {"request_id": getattr(request.state, "request_id", None)}
    if isinstance(exc, CompensationFailed):
        extra["order_id"] = exc.order_id
        logger.error(exc.message, extra=extra)
    else:
        logger.warning(exc.message, extra=extra)

    details = {"code": exc.code}
    for attr in ("product_name", "order_id", "value"):
        if hasattr(exc, attr):
            details[attr] = getattr(exc, attr)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, details=details).model_dump(),
    )

# --- Dependencies ---
def get_store(request: Request) -> DocumentStore:
    return request.app.state.store

def get_notifier(request: Request) -> OrderNotifier:
    return request.app.state.notifier

def get_order_service(store: DocumentStore = Depends(get_store)) -> OrderService:
    return OrderService(store)

# --- Helpers ---
def order_response(order: OrderDB) -> OrderResponse:
    data = order.model_dump()
    data["status"] = order.status.value
    return OrderResponse(**data)

def product_response(product: ProductDB) -> ProductResponse:
    return ProductResponse(**product.model_dump())

# --- Endpoints ---

# Checkout
@app.post("/orders", response_model=SuccessResponse[OrderResponse])
@limiter.limit(settings.CHECKOUT_RATE_LIMIT)
async def create_order(
    request: Request,
    order_in: OrderCreate,
    background_tasks: BackgroundTasks,
    service: OrderService = Depends(get_order_service),
    notifier: OrderNotifier = Depends(get_notifier),
):
    client = ClientInfo(**order_in.client.model_dump())
    order = await service.create_order(client, order_in.items)
    background_tasks.add_task(notify_order_created, notifier, order)
    return SuccessResponse(data=order_response(order), message="Order created successfully")

# Order administration
@app.get("/orders", response_model=SuccessResponse[List[OrderResponse]])
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: OrderService = Depends(get_order_service),
    admin: dict = Depends(require_admin),
):
    skip = (page - 1) * limit
    orders = await service.list_orders(status=status_filter, skip=skip, limit=limit)
    return SuccessResponse(data=[order_response(o) for o in orders])

@app.get("/orders/{order_id}", response_model=SuccessResponse[OrderResponse])
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    admin: dict = Depends(require_admin),
):
    order = await service.get_order(order_id)
    return SuccessResponse(data=order_response(order))

@app.put("/orders/{order_id}/status", response_model=SuccessResponse[OrderResponse])
async def update_order_status(
    order_id: str,
    status_update: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
    admin: dict = Depends(require_admin),
):
    order = await service.set_status(order_id, status_update.status)
    return SuccessResponse(data=order_response(order), message=f"Order is now {order.status.value}")

# Payments (internal, called by the payment provider integration)
@app.post("/payments/events", response_model=SuccessResponse[OrderResponse])
async def payment_event(
    event: PaymentEvent,
    service: OrderService = Depends(get_order_service),
    _: None = Depends(require_internal),
):
    order = await service.apply_payment_event(event.order_id, event.event, event.payment_id)
    return SuccessResponse(data=order_response(order))

# Catalog
@app.get("/products", response_model=SuccessResponse[List[ProductResponse]])
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    store: DocumentStore = Depends(get_store),
):
    skip = (page - 1) * limit
    products = await catalog.list_products(store, skip=skip, limit=limit)
    return SuccessResponse(data=[product_response(p) for p in products])

@app.get("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def get_product(product_id: str, store: DocumentStore = Depends(get_store)):
    product = await catalog.require_product(store, product_id)
    return SuccessResponse(data=product_response(product))

@app.post("/products", response_model=SuccessResponse[ProductResponse])
async def create_product(
    product_in: ProductCreate,
    store: DocumentStore = Depends(get_store),
    admin: dict = Depends(require_admin),
):
    product = await catalog.create_product(store, product_in)
    return SuccessResponse(data=product_response(product), message="Product created successfully")

@app.put("/products/{product_id}", response_model=SuccessResponse[ProductResponse])
async def update_product(
    product_id: str,
    product_update: ProductUpdate,
    store: DocumentStore = Depends(get_store),
    admin: dict = Depends(require_admin),
):
    product = await catalog.update_product(store, product_id, product_update)
    return SuccessResponse(data=product_response(product), message="Product updated successfully")

@app.delete("/products/{product_id}", response_model=SuccessResponse[dict])
async def delete_product(
    product_id: str,
    store: DocumentStore = Depends(get_store),
    admin: dict = Depends(require_admin),
):
    await catalog.delete_product(store, product_id)
    return SuccessResponse(data={"id": product_id}, message="Product deleted successfully")

@app.post("/products/{product_id}/stock", response_model=SuccessResponse[ProductResponse])
async def adjust_product_stock(
    product_id: str,
    adjustment: StockAdjust,
    store: DocumentStore = Depends(get_store),
    admin: dict = Depends(require_admin),
):
    product = await catalog.adjust_stock(store, product_id, adjustment.delta)
    return SuccessResponse(data=product_response(product), message="Stock updated")

# Admin
@app.get("/admin/stats", response_model=SuccessResponse[AdminStats])
async def get_admin_stats(store: DocumentStore = Depends(get_store), admin: dict = Depends(require_admin)):
    return SuccessResponse(data=await admin_stats(store))

@app.post("/admin/maintenance/cleanup", response_model=SuccessResponse[CleanupResult])
async def run_cleanup(store: DocumentStore = Depends(get_store), admin: dict = Depends(require_admin)):
    deleted, cutoff = await cleanup_old_orders(store)
    return SuccessResponse(data=CleanupResult(deleted=deleted, cutoff=cutoff), message=f"Cleaned up {deleted} old orders")

@app.get("/health", response_model=HealthResponse)
async def health_check(store: DocumentStore = Depends(get_store)):
    try:
        await store.ping()
        db_status = "connected"
    except Exception:
        db_status = "disconnected"

    if db_status != "connected":
        logger.error(f"Health Check Failed: DB={db_status}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Service Unhealthy: DB={db_status}"
        )

    return HealthResponse(
        service=SERVICE_NAME,
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database=db_status,
    )
