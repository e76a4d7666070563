from fastapi import Depends, FastAPI, Request
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from core.auth import fastapi_users, auth_backend
from core.config import settings
from core.csrf import csrf_protect
from core.errors import register_exception_handlers
from core.logging import configure_logging, new_trace_id, reset_trace_id, set_trace_id
from db.database import create_db_and_tables
from routers import (
    allocations,
    batches,
    boms,
    customers,
    fulfillments,
    health,
    inventory,
    locations,
    lookups,
    orders,
    pricing,
    products,
    reports,
    session,
    skus,
    suppliers,
    users,
    warehouses,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_format)
    await create_db_and_tables()
    yield


app = FastAPI(
    title="Inventory ERP API",
    description="API for warehouse inventory, order allocation and fulfillment",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Trace-Id"],
)


@app.middleware("http")
async def trace_id_middleware(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id") or new_trace_id()
    request.state.trace_id = trace_id
    token = set_trace_id(trace_id)
    try:
        response = await call_next(request)
    finally:
        reset_trace_id(token)
    response.headers["X-Trace-Id"] = trace_id
    return response


register_exception_handlers(app)

csrf = [Depends(csrf_protect)]

# Authentication routes (fastapi-users): /auth/login, /auth/logout
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth", tags=["auth"], dependencies=csrf)
app.include_router(health.router, tags=["health"])
app.include_router(session.router, tags=["session"], dependencies=csrf)
app.include_router(users.router, prefix="/users", tags=["users"], dependencies=csrf)

# Catalog
app.include_router(products.router, prefix="/products", tags=["products"], dependencies=csrf)
app.include_router(skus.router, prefix="/skus", tags=["skus"], dependencies=csrf)
app.include_router(suppliers.router, prefix="/suppliers", tags=["suppliers"], dependencies=csrf)
app.include_router(suppliers.manufacturers_router, prefix="/manufacturers", tags=["suppliers"], dependencies=csrf)
app.include_router(batches.registry_router, prefix="/batch-registry", tags=["batches"])
app.include_router(batches.product_batches_router, prefix="/product-batches", tags=["batches"], dependencies=csrf)
app.include_router(
    batches.packaging_batches_router, prefix="/packaging-material-batches", tags=["batches"], dependencies=csrf
)

# Locations / warehouses / stock
app.include_router(locations.router, prefix="/locations", tags=["locations"], dependencies=csrf)
app.include_router(locations.types_router, prefix="/location-types", tags=["locations"])
app.include_router(warehouses.router, prefix="/warehouses", tags=["warehouses"], dependencies=csrf)
app.include_router(inventory.warehouse_router, prefix="/warehouse-inventory", tags=["inventory"], dependencies=csrf)
app.include_router(inventory.location_router, prefix="/location-inventory", tags=["inventory"])
app.include_router(inventory.action_types_router, prefix="/inventory-action-types", tags=["inventory"])

# Orders, allocation and fulfillment
app.include_router(orders.router, prefix="/orders", tags=["orders"], dependencies=csrf)
app.include_router(allocations.orders_router, prefix="/orders", tags=["allocations"], dependencies=csrf)
app.include_router(fulfillments.orders_router, prefix="/orders", tags=["fulfillments"], dependencies=csrf)
app.include_router(allocations.router, prefix="/inventory-allocations", tags=["allocations"])
app.include_router(fulfillments.router, prefix="/outbound-shipments", tags=["fulfillments"], dependencies=csrf)

# Production and customers
app.include_router(boms.router, prefix="/boms", tags=["boms"])
app.include_router(customers.router, prefix="/customers", tags=["customers"], dependencies=csrf)
app.include_router(customers.addresses_router, prefix="/addresses", tags=["customers"], dependencies=csrf)

# Pricing, reports, lookups
app.include_router(pricing.router, prefix="/pricing", tags=["pricing"], dependencies=csrf)
app.include_router(pricing.types_router, prefix="/pricing-types", tags=["pricing"])
app.include_router(reports.router, prefix="/reports", tags=["reports"])
app.include_router(lookups.router, prefix="/lookups", tags=["lookups"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
