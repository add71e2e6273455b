import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from bookshop.database import create_db_and_tables
from bookshop.config import settings
from bookshop.exceptions import BookshopError
from bookshop.routes import (
    admin_orders,
    cart,
    checkout,
    health,
    user_orders,
)

from contextlib import asynccontextmanager

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local, migrations own the schema elsewhere
    if settings.env == "local":
        create_db_and_tables()
    yield

app = FastAPI(title="Bookshop Checkout API", lifespan=lifespan)


@app.exception_handler(BookshopError)
async def bookshop_error_handler(request: Request, exc: BookshopError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


app.include_router(cart.router, prefix="/cart", tags=["Cart"])
app.include_router(checkout.router , prefix="/checkout", tags=["Checkout"])
app.include_router(user_orders.router, prefix="/orders", tags=["Orders"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(health.router, prefix="/health", tags=["Health"])

@app.get("/")
def root():
    return {
        "cart": [
            "/cart", "/cart/add", "/cart/update/{id}",
            "/cart/remove/{id}", "/cart/clear"
        ],
        "checkout": [
            "/checkout/place-order", "/checkout/discount"
        ],
        "orders": [
            "/orders", "/orders/{order_id}", "/orders/{order_id}/timeline"
        ],
        "admin_orders": [
            "/admin/orders", "/admin/orders/{order_id}",
            "/admin/orders/{order_id}/status", "/admin/orders/users/{user_id}"
        ],
    }
