# subpanel/main.py

from dotenv import load_dotenv

# ---------------------------------------------
# LOAD ENVIRONMENT VARIABLES
# ---------------------------------------------
load_dotenv()

from fastapi import FastAPI  # noqa: E402

from .config import settings  # noqa: E402
from .exceptions import register_error_handlers  # noqa: E402
from .middleware import request_id_middleware  # noqa: E402
from .routers import health, order_checkout, payment_notify  # noqa: E402

# ---------------------------------------------
# APP INIT
# ---------------------------------------------
app = FastAPI(
    title="Subpanel Payment API",
    version=settings.APP_VERSION,
)

register_error_handlers(app)
app.middleware("http")(request_id_middleware)

# ---------------------------------------------
# ROUTERS
# ---------------------------------------------

# Health
app.include_router(health.router, prefix="/health", tags=["Health"])

# Payment notifications (called by providers)
app.include_router(payment_notify.router, prefix="/api/v1/guest/payment", tags=["Payment Notify"])

# Checkout
app.include_router(order_checkout.router, prefix="/api/v1/user/order", tags=["Order"])
